"""
Reporting module for FINSTMT.

Provides the Balance Sheet and Profit & Loss assemblers, financial ratios,
the Trial Balance validator and period-over-period comparison.
"""
