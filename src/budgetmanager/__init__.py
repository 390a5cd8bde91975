"""Budget Manager: personal budget tracking API.

Users record income and expense transactions, organise them into
categories, track savings goals and monthly budgets, and receive
alerts when a budget runs out.
"""

__version__ = "0.1.0"
