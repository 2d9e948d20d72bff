# RoomAuth — OAuth 2.0 authorization server and social login federation.
# Created: 2026-03-02

__version__ = "0.1.0"
