"""Pay Stat - statutory deduction and tax relief calculation for payroll."""

__version__ = "0.1.0"
