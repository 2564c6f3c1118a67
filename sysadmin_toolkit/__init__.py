"""Personal sysadmin scripts: Debian server bootstrap and a script template."""

__version__ = "1.0.0"
