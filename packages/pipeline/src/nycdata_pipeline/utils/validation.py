"""
utils/validation.py — Dataset-level validation gates run before any destructive write.

Each check returns a ValidationResult instead of raising, so a pipeline can
run every gate for a data set, report all failures with structured detail,
and only then decide whether the clear+insert step may proceed.

Usage:
    from nycdata_pipeline.utils.validation import ValidationGate, validators

    gate = ValidationGate("DCP Housing Database")
    gate.check(validate_minimum_record_count(records, 10000, "DCP Housing Database"))
    gate.check(validate_required_fields(records, ["Job_Number", "BBL"], "DCP Housing Database", 50))
    gate.check(validate_data_types(records, {"Latitude": validators.is_valid_latitude}, "DCP Housing Database", 50))

    if not gate.passed:
        gate.log_failures()
        return RunOutcome.validation_failed(gate.failures)
"""

from __future__ import annotations

import math
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

import structlog
from dateutil import parser as date_parser

from nycdata_shared.geo import is_valid_bbl, is_valid_latitude, is_valid_longitude

log = structlog.get_logger(__name__)

FieldValidator = Callable[[Any], bool]
RecordsCheck = Callable[[Sequence[Any]], "ValidationResult"]


@dataclass(frozen=True)
class ValidationResult:
    """Outcome of one validation check."""

    dataset: str
    passed: bool
    message: str
    details: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def ok(cls, dataset: str, message: str, **details: Any) -> "ValidationResult":
        return cls(dataset=dataset, passed=True, message=message, details=details)

    @classmethod
    def fail(cls, dataset: str, message: str, **details: Any) -> "ValidationResult":
        return cls(dataset=dataset, passed=False, message=message, details=details)


class ValidationError(Exception):
    """Raised by ValidationGate.raise_for_failures() when any check failed."""

    def __init__(self, failures: Sequence[ValidationResult]) -> None:
        self.failures = list(failures)
        super().__init__("; ".join(f.message for f in self.failures))


class ValidationGate:
    """Collects ValidationResults for one data set; passed only if every check passed."""

    def __init__(self, dataset: str) -> None:
        self.dataset = dataset
        self.results: list[ValidationResult] = []

    def check(self, result: ValidationResult) -> ValidationResult:
        self.results.append(result)
        if result.passed:
            log.info("validation_passed", dataset=result.dataset, message=result.message)
        else:
            log.warning("validation_failed", dataset=result.dataset, message=result.message)
        return result

    @property
    def passed(self) -> bool:
        return all(r.passed for r in self.results)

    @property
    def failures(self) -> list[ValidationResult]:
        return [r for r in self.results if not r.passed]

    def log_failures(self) -> None:
        for failure in self.failures:
            log.error(
                "validation_failure_detail",
                dataset=failure.dataset,
                message=failure.message,
                details=failure.details,
            )
        if self.failures:
            log.error(
                "destructive_write_blocked",
                dataset=self.dataset,
                failures=len(self.failures),
                note="persisted tables were not cleared",
            )

    def raise_for_failures(self) -> None:
        if not self.passed:
            raise ValidationError(self.failures)


# ---------------------------------------------------------------------------
# Checks
# ---------------------------------------------------------------------------


def validate_minimum_record_count(
    records: Any,
    min_count: int,
    dataset: str,
) -> ValidationResult:
    """Guard against partial API responses that would shrink the stored data set."""
    if not isinstance(records, Sequence) or isinstance(records, (str, bytes)):
        return ValidationResult.fail(
            dataset,
            f"{dataset}: Expected a sequence of records, got {type(records).__name__}",
            received=type(records).__name__,
            expected="sequence",
        )

    if len(records) < min_count:
        return ValidationResult.fail(
            dataset,
            f"{dataset}: Insufficient records ({len(records)} < {min_count} minimum)",
            received=len(records),
            minimum=min_count,
            suggestion="API may be returning incomplete data or rate limiting. Check API status.",
        )

    return ValidationResult.ok(
        dataset,
        f"{dataset}: {len(records)} records (minimum: {min_count})",
        received=len(records),
        minimum=min_count,
    )


def validate_required_fields(
    records: Sequence[Mapping[str, Any]],
    required_fields: Sequence[str],
    dataset: str,
    sample_size: int = 10,
    max_failure_rate: float = 10.0,
) -> ValidationResult:
    """
    Check that the first sample_size records carry every required field.

    A field counts as present when its key exists, even with a null value.
    The check fails only when the share of sampled records missing a field
    exceeds max_failure_rate percent, which catches provider schema changes
    without failing on a few sparse rows.
    """
    if not records:
        return ValidationResult.fail(
            dataset, f"{dataset}: No records to validate", record_count=0
        )

    samples = min(sample_size, len(records))
    missing_by_record: list[dict[str, Any]] = []

    for i in range(samples):
        missing = [f for f in required_fields if f not in records[i]]
        if missing:
            missing_by_record.append({"record_index": i, "missing_fields": missing})

    if not missing_by_record:
        return ValidationResult.ok(
            dataset,
            f"{dataset}: All required fields present (checked {samples} records)",
            sample_size=samples,
        )

    failure_rate = len(missing_by_record) / samples * 100
    details = {
        "failure_rate": f"{failure_rate:.1f}%",
        "threshold": f"{max_failure_rate}%",
        "required_fields": list(required_fields),
        "sample_size": samples,
        "failures": missing_by_record[:3],
    }

    if failure_rate > max_failure_rate:
        return ValidationResult.fail(
            dataset,
            f"{dataset}: {len(missing_by_record)}/{samples} sampled records have missing "
            f"required fields ({failure_rate:.1f}% > {max_failure_rate}% threshold)",
            suggestion="API schema may have changed. Review the provider's field names.",
            **details,
        )

    log.warning(
        "required_fields_within_threshold",
        dataset=dataset,
        missing=len(missing_by_record),
        sample_size=samples,
        failure_rate=details["failure_rate"],
    )
    return ValidationResult.ok(
        dataset,
        f"{dataset}: {len(missing_by_record)}/{samples} records missing fields "
        f"(within {max_failure_rate}% threshold)",
        **details,
    )


def validate_data_types(
    records: Sequence[Mapping[str, Any]],
    field_validators: Mapping[str, FieldValidator],
    dataset: str,
    sample_size: int = 10,
) -> ValidationResult:
    """Check that sampled values for critical fields parse as the expected type."""
    if not records:
        return ValidationResult.fail(
            dataset, f"{dataset}: No records to validate", record_count=0
        )

    samples = min(sample_size, len(records))
    type_errors: list[dict[str, Any]] = []

    for i in range(samples):
        record = records[i]
        for field_name, validator in field_validators.items():
            value = record.get(field_name)
            try:
                valid = validator(value)
            except (TypeError, ValueError) as exc:
                type_errors.append(
                    {"record_index": i, "field": field_name, "value": value, "error": str(exc)}
                )
                continue
            if not valid:
                type_errors.append(
                    {
                        "record_index": i,
                        "field": field_name,
                        "value": value,
                        "error": "Validator returned false",
                    }
                )

    if type_errors:
        failure_rate = len(type_errors) / (samples * len(field_validators)) * 100
        return ValidationResult.fail(
            dataset,
            f"{dataset}: {len(type_errors)} type validation errors in {samples} sampled records",
            failure_rate=f"{failure_rate:.1f}%",
            sample_size=samples,
            failures=type_errors[:5],
            suggestion="Data format may have changed. Review the provider's documentation.",
        )

    return ValidationResult.ok(
        dataset,
        f"{dataset}: All data types valid (checked {samples} records)",
        sample_size=samples,
    )


def validate_processed_records(
    records: Sequence[Any],
    checks: Sequence[RecordsCheck],
    dataset: str,
    *,
    allow_empty: bool = False,
) -> ValidationResult:
    """Run every check over the transformed records and combine their failures."""
    if not records and not allow_empty:
        return ValidationResult.fail(
            dataset, f"{dataset}: No processed records to validate", record_count=0
        )

    failures = [r for r in (check(records) for check in checks) if not r.passed]
    if failures:
        return ValidationResult.fail(
            dataset,
            f"{dataset}: {len(failures)} validation error(s): "
            + "; ".join(f.message for f in failures),
            errors=[{"message": f.message, "details": f.details} for f in failures],
        )

    return ValidationResult.ok(
        dataset,
        f"{dataset}: All {len(records)} processed records validated successfully",
        record_count=len(records),
    )


def require_fields(dataset: str, *attributes: str) -> RecordsCheck:
    """Build a check that every record has a truthy value for each attribute."""

    def check(records: Sequence[Any]) -> ValidationResult:
        invalid = [
            r for r in records if any(not getattr(r, attr, None) for attr in attributes)
        ]
        if invalid:
            return ValidationResult.fail(
                dataset,
                f"{len(invalid)} {dataset} records missing required fields",
                required=list(attributes),
                invalid_count=len(invalid),
            )
        return ValidationResult.ok(dataset, f"{dataset}: required fields present")

    return check


# ---------------------------------------------------------------------------
# Field validators
# ---------------------------------------------------------------------------


def _is_number(value: Any) -> bool:
    if value is None or isinstance(value, bool):
        return False
    try:
        return math.isfinite(float(value))
    except (TypeError, ValueError):
        return False


def _is_positive_number(value: Any) -> bool:
    return _is_number(value) and float(value) > 0


def _is_integer(value: Any) -> bool:
    return _is_number(value) and float(value).is_integer()


def _is_valid_date(value: Any) -> bool:
    if not value:
        return False
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        # ArcGIS date fields are epoch milliseconds
        return math.isfinite(value)
    try:
        date_parser.parse(str(value))
    except (ValueError, OverflowError):
        return False
    return True


def _is_year_in_range(min_year: int, max_year: int) -> FieldValidator:
    def check(value: Any) -> bool:
        return _is_number(value) and min_year <= int(float(value)) <= max_year

    return check


def _is_non_empty_string(value: Any) -> bool:
    return isinstance(value, str) and bool(value.strip())


class _Validators:
    """Namespace of reusable field validators."""

    is_number = staticmethod(_is_number)
    is_positive_number = staticmethod(_is_positive_number)
    is_integer = staticmethod(_is_integer)
    is_valid_date = staticmethod(_is_valid_date)
    is_year_in_range = staticmethod(_is_year_in_range)
    is_non_empty_string = staticmethod(_is_non_empty_string)
    is_valid_latitude = staticmethod(is_valid_latitude)
    is_valid_longitude = staticmethod(is_valid_longitude)
    is_valid_bbl = staticmethod(is_valid_bbl)


validators = _Validators()
