"""Bulk import of sales and client workbooks."""
