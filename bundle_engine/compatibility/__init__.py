"""Compatibility module for rule-based bundle checks."""

from .rules import (
    CheckResult,
    CompatibilityReport,
    check_compatibility,
    check_cpu_motherboard,
    check_ram_motherboard,
    check_psu_wattage,
    check_gpu_case,
    estimate_wattage,
)

__all__ = [
    "CheckResult",
    "CompatibilityReport",
    "check_compatibility",
    "check_cpu_motherboard",
    "check_ram_motherboard",
    "check_psu_wattage",
    "check_gpu_case",
    "estimate_wattage",
]
