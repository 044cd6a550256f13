"""CSV-driven batch user provisioning for Microsoft Entra External tenants."""

__version__ = "0.1.0"
