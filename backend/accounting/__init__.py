# accounting/__init__.py
"""
Accounting app - Double-entry bookkeeping ledger.

This app provides:
- Account: Chart of Accounts with hierarchy (registry.py)
- JournalEntry / JournalLine: Double-entry entries and their lines
- The journal engine (commands.py): draft, post, void, delete

Every operation takes a tenant.context.SchemaContext.
"""
