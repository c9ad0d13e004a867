"""Selectors for the payroll kernel (read side)."""

from payroll_kernel.selectors.payroll_selector import (
    EmployeeInfo,
    PayrollInfo,
    PayrollSelector,
)

__all__ = ["EmployeeInfo", "PayrollInfo", "PayrollSelector"]
