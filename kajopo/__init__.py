"""Kájọpọ̀ Connect: sessions, access control and opportunity matching."""

__version__ = "0.1.0"
