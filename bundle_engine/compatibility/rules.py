"""
Rule-based compatibility checking for PC component bundles.

The checker is a pure function of the part set: no store access, no model,
no side effects. It runs four independent checks and aggregates them into a
0-100 score.

Checks (evaluated in this order):
- cpu_motherboard: CPU socket equals motherboard socket (case-insensitive)
- ram_motherboard: RAM memory generation equals the motherboard's
- psu_wattage: PSU covers the estimated draw (warning below 20% headroom)
- gpu_case: GPU length fits the case's maximum GPU length

Key Design Decisions:
- Missing parts and missing specifications pass vacuously; absence of data
  is not evidence of incompatibility
- All four checks always count toward the score, so a bundle with a single
  failing check scores 75
- Specification values are parsed leniently ("65W", "65 W", "65")
"""

import logging
import math
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional

from ..catalog.schema import Category, Product
from ..normalization import parse_spec_number, round_half_up

logger = logging.getLogger(__name__)

BASE_SYSTEM_WATTAGE = 100
DEFAULT_CPU_TDP = 65
DEFAULT_GPU_TDP = 150
RAM_WATTAGE = 30
SSD_WATTAGE = 10
HDD_WATTAGE = 20
DEFAULT_PSU_WATTAGE = 500
PSU_HEADROOM = 1.2

DEFAULT_GPU_LENGTH_MM = 280
DEFAULT_CASE_MAX_GPU_LENGTH_MM = 320

# Checked newest first; anything unrecognized is the oldest generation
MEMORY_GENERATIONS = ["ddr5", "ddr4"]
FALLBACK_MEMORY_GENERATION = "ddr3"

CHECK_ORDER = ["cpu_motherboard", "ram_motherboard", "psu_wattage", "gpu_case"]


@dataclass
class CheckResult:
    """
    Outcome of a single compatibility check.

    Attributes:
        compatible: Whether the check passed
        issues: Problems that make the bundle incompatible
        warnings: Non-fatal observations
        details: Check-specific numbers (e.g. wattage estimates)
    """
    compatible: bool = True
    issues: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    details: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        result = {
            "compatible": self.compatible,
            "issues": list(self.issues),
            "warnings": list(self.warnings)
        }
        result.update(self.details)
        return result


@dataclass
class CompatibilityReport:
    """
    Aggregate compatibility report for a bundle.

    Attributes:
        compatible: Logical AND of every check
        score: round(100 * passed / total)
        issues: All issues, concatenated in check order
        warnings: All warnings, concatenated in check order
        checks: Individual check results keyed by check name
    """
    compatible: bool
    score: int
    issues: List[str]
    warnings: List[str]
    checks: Dict[str, CheckResult]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "compatible": self.compatible,
            "score": self.score,
            "issues": list(self.issues),
            "warnings": list(self.warnings),
            "checks": {name: check.to_dict() for name, check in self.checks.items()}
        }


def check_cpu_motherboard(
    cpu: Optional[Product],
    motherboard: Optional[Product]
) -> CheckResult:
    """
    Check that the CPU and motherboard share a socket.

    Args:
        cpu: CPU product or None
        motherboard: Motherboard product or None

    Returns:
        CheckResult; compatible when either part or socket is unspecified
    """
    if cpu is None or motherboard is None:
        return CheckResult()

    cpu_socket = cpu.get_spec("socket") or ""
    mb_socket = motherboard.get_spec("socket") or ""

    issues = []
    if cpu_socket and mb_socket and cpu_socket.lower() != mb_socket.lower():
        issues.append(f"Socket mismatch: CPU ({cpu_socket}) vs Motherboard ({mb_socket})")

    return CheckResult(compatible=not issues, issues=issues)


def classify_memory_generation(memory_type: str) -> str:
    """Classify a memory type string as ddr5, ddr4 or (fallback) ddr3."""
    lowered = memory_type.lower()
    for generation in MEMORY_GENERATIONS:
        if generation in lowered:
            return generation
    return FALLBACK_MEMORY_GENERATION


def check_ram_motherboard(
    ram: Optional[Product],
    motherboard: Optional[Product]
) -> CheckResult:
    """
    Check that RAM and motherboard use the same memory generation.

    Args:
        ram: RAM product or None (reads specifications["type"])
        motherboard: Motherboard product or None (reads specifications["memoryType"])

    Returns:
        CheckResult; compatible when either part or type is unspecified
    """
    if ram is None or motherboard is None:
        return CheckResult()

    ram_type = (ram.get_spec("type") or "").lower()
    mb_memory_type = (motherboard.get_spec("memoryType") or "").lower()

    issues = []
    if ram_type and mb_memory_type:
        ram_gen = classify_memory_generation(ram_type)
        mb_gen = classify_memory_generation(mb_memory_type)
        if ram_gen != mb_gen:
            issues.append(
                f"Memory type mismatch: RAM ({ram_type}) vs Motherboard ({mb_memory_type})"
            )

    return CheckResult(compatible=not issues, issues=issues)


def estimate_wattage(parts: Mapping[Category, Product]) -> int:
    """
    Estimate the system's power draw in watts.

    Base load plus CPU and GPU TDP (with defaults when unparseable),
    a flat allowance for RAM, and storage draw depending on SSD vs HDD.
    """
    estimated = BASE_SYSTEM_WATTAGE

    cpu = parts.get(Category.CPU)
    if cpu is not None:
        estimated += parse_spec_number(cpu.get_spec("TDP"), DEFAULT_CPU_TDP)

    gpu = parts.get(Category.GPU)
    if gpu is not None:
        estimated += parse_spec_number(gpu.get_spec("TDP"), DEFAULT_GPU_TDP)

    if parts.get(Category.RAM) is not None:
        estimated += RAM_WATTAGE

    storage = parts.get(Category.STORAGE)
    if storage is not None:
        is_ssd = "ssd" in (storage.get_spec("type") or "").lower()
        estimated += SSD_WATTAGE if is_ssd else HDD_WATTAGE

    return int(estimated)


def check_psu_wattage(parts: Mapping[Category, Product]) -> CheckResult:
    """
    Check that the PSU covers the estimated draw.

    A PSU below the estimate is an issue. A PSU between the estimate and the
    recommended wattage (estimate plus 20% headroom) only produces a warning.
    A missing PSU, or one without a wattage spec, is assumed to be 500W.

    Args:
        parts: Mapping of category to product

    Returns:
        CheckResult with total_wattage, psu_wattage and recommended_wattage details
    """
    estimated = estimate_wattage(parts)
    recommended = int(math.ceil(estimated * PSU_HEADROOM))

    psu = parts.get(Category.PSU)
    psu_wattage = int(parse_spec_number(
        psu.get_spec("wattage") if psu is not None else None,
        DEFAULT_PSU_WATTAGE
    ))

    issues = []
    warnings = []
    if psu_wattage < estimated:
        issues.append(f"PSU wattage too low: {psu_wattage}W (need at least {estimated}W)")
    elif psu_wattage < recommended:
        warnings.append(
            f"PSU wattage adequate but tight: {psu_wattage}W (recommended {recommended}W)"
        )

    return CheckResult(
        compatible=not issues,
        issues=issues,
        warnings=warnings,
        details={
            "total_wattage": estimated,
            "psu_wattage": psu_wattage,
            "recommended_wattage": recommended
        }
    )


def check_gpu_case(gpu: Optional[Product], pc_case: Optional[Product]) -> CheckResult:
    """
    Check that the GPU fits inside the case.

    Args:
        gpu: GPU product or None (reads specifications["length"])
        pc_case: Case product or None (reads specifications["maxGPULength"])

    Returns:
        CheckResult; compatible when either part is missing
    """
    if gpu is None or pc_case is None:
        return CheckResult()

    gpu_length = int(parse_spec_number(gpu.get_spec("length"), DEFAULT_GPU_LENGTH_MM))
    max_length = int(parse_spec_number(pc_case.get_spec("maxGPULength"), DEFAULT_CASE_MAX_GPU_LENGTH_MM))

    issues = []
    if gpu_length > max_length:
        issues.append(f"GPU too long: {gpu_length}mm (case supports up to {max_length}mm)")

    return CheckResult(compatible=not issues, issues=issues)


def normalize_parts(parts: Mapping[Any, Optional[Product]]) -> Dict[Category, Product]:
    """
    Key a part mapping by Category, dropping empty slots.

    Accepts Category members or category strings ("CPU", "Motherboard").

    Raises:
        ValueError: If a key is not a known category
    """
    normalized = {}
    for key, product in parts.items():
        if product is None:
            continue
        normalized[Category.parse(key)] = product
    return normalized


def check_compatibility(parts: Mapping[Any, Optional[Product]]) -> CompatibilityReport:
    """
    Run every compatibility check over a part set.

    Args:
        parts: Mapping from category (Category or its string value) to product;
            missing or None entries are treated as absent parts

    Returns:
        CompatibilityReport with score, issues, warnings and per-check results
    """
    by_category = normalize_parts(parts)

    checks = {
        "cpu_motherboard": check_cpu_motherboard(
            by_category.get(Category.CPU), by_category.get(Category.MOTHERBOARD)
        ),
        "ram_motherboard": check_ram_motherboard(
            by_category.get(Category.RAM), by_category.get(Category.MOTHERBOARD)
        ),
        "psu_wattage": check_psu_wattage(by_category),
        "gpu_case": check_gpu_case(
            by_category.get(Category.GPU), by_category.get(Category.CASE)
        ),
    }

    issues = []
    warnings = []
    for name in CHECK_ORDER:
        issues.extend(checks[name].issues)
        warnings.extend(checks[name].warnings)

    passed = sum(1 for check in checks.values() if check.compatible)
    score = round_half_up(100 * passed / len(checks))

    report = CompatibilityReport(
        compatible=all(check.compatible for check in checks.values()),
        score=score,
        issues=issues,
        warnings=warnings,
        checks=checks
    )
    logger.debug(f"Compatibility: score={report.score}, issues={len(issues)}, warnings={len(warnings)}")
    return report
