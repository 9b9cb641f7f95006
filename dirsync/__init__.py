"""Change polling for LDAP-style directories using timestamp watermarks."""

__version__ = "0.1.0"
