"""Classic STUN (RFC 3489) NAT type discovery on top of Twisted
"""
__version__ = '0.1.0'
