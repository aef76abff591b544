"""erpfill: fill ERP web forms from spreadsheet rows with Playwright."""

__version__ = "0.1.0"
