"""Command argument validation for appctl.

Each check is independent; checks run in a fixed order and all failures are
reported, so the outcome never depends on which check happens to come first.
"""

import re
from typing import List, Optional, Sequence
from dataclasses import dataclass

from appctl.models import CreateAppOptions

SEPARATOR = "--"

# Optional sign and decimal digits only; no whitespace or underscores
_INTEGER_PATTERN = re.compile(r"[+-]?[0-9]+")

MIN_CPU_WEIGHT = 1
MAX_CPU_WEIGHT = 100


@dataclass
class ValidationError:
    """Represents a command argument validation error."""
    field: str
    message: str
    suggestion: Optional[str] = None


@dataclass
class ValidationResult:
    """Result of argument validation."""
    is_valid: bool
    errors: List[ValidationError]
    warnings: List[ValidationError]

    @property
    def has_errors(self) -> bool:
        """Check if there are any validation errors."""
        return len(self.errors) > 0

    @property
    def has_warnings(self) -> bool:
        """Check if there are any validation warnings."""
        return len(self.warnings) > 0


def _result(errors: List[ValidationError], warnings: Optional[List[ValidationError]] = None) -> ValidationResult:
    return ValidationResult(is_valid=len(errors) == 0, errors=errors, warnings=warnings or [])


class ArgumentValidator:
    """Validates positional arguments and flags of the app commands."""

    def validate_create_args(self, args: Sequence[str], options: CreateAppOptions) -> ValidationResult:
        """Validate `create` arguments.

        Args:
            args: Positional tokens as typed, including the `--` separator
                and the start command that follows it
            options: Parsed flags

        Returns:
            ValidationResult; checks run in order arg count, separator, limits
        """
        errors = []
        errors.extend(self._validate_create_arg_count(args))
        errors.extend(self._validate_separator(args))
        errors.extend(self._validate_limits(options))
        return _result(errors, self._limit_warnings(options))

    def validate_create_options(self, options: CreateAppOptions) -> ValidationResult:
        """Validate create options that did not come from the command line."""
        errors = []
        if not options.name or not options.image:
            errors.append(ValidationError(
                field="args",
                message="APP_NAME and DOCKER_IMAGE are required"
            ))
        errors.extend(self._validate_limits(options))
        return _result(errors, self._limit_warnings(options))

    def validate_scale_args(self, args: Sequence[str]) -> ValidationResult:
        """Validate `scale APP_NAME NUMBER_OF_INSTANCES`."""
        if len(args) != 2 or not args[0] or not args[1]:
            return _result([ValidationError(
                field="args",
                message="Please enter 'appctl scale APP_NAME NUMBER_OF_INSTANCES'"
            )])

        if not _INTEGER_PATTERN.fullmatch(args[1]):
            return _result([ValidationError(
                field="instances",
                message="Number of Instances must be an integer"
            )])
        instances = int(args[1])

        if instances < 0:
            return _result([ValidationError(
                field="instances",
                message="Number of Instances must not be negative"
            )])
        return _result([])

    def validate_update_routes_args(self, args: Sequence[str]) -> ValidationResult:
        """Validate `update-routes APP_NAME NEW_ROUTES`."""
        if len(args) != 2 or not args[0] or not args[1]:
            return _result([ValidationError(
                field="args",
                message="Please enter 'appctl update-routes APP_NAME NEW_ROUTES'",
                suggestion="Routes look like 80:web,8080:api"
            )])
        return _result([])

    def validate_remove_args(self, args: Sequence[str]) -> ValidationResult:
        """Validate `remove APP_NAME`."""
        if len(args) != 1 or not args[0]:
            return _result([ValidationError(field="args", message="App Name required")])
        return _result([])

    @staticmethod
    def _positional(args: Sequence[str]) -> List[str]:
        """Tokens before the `--` separator."""
        if SEPARATOR in args:
            return list(args[:list(args).index(SEPARATOR)])
        return list(args)

    def _validate_create_arg_count(self, args: Sequence[str]) -> List[ValidationError]:
        if len(self._positional(args)) < 2:
            return [ValidationError(
                field="args",
                message="APP_NAME and DOCKER_IMAGE are required"
            )]
        return []

    def _validate_separator(self, args: Sequence[str]) -> List[ValidationError]:
        if len(self._positional(args)) > 2:
            return [ValidationError(
                field="start_command",
                message="'--' Required before start command",
                suggestion="appctl create APP_NAME DOCKER_IMAGE -- START_COMMAND APP_ARG1 ..."
            )]
        return []

    def _validate_limits(self, options: CreateAppOptions) -> List[ValidationError]:
        errors = []

        if options.cpu_weight < MIN_CPU_WEIGHT or options.cpu_weight > MAX_CPU_WEIGHT:
            errors.append(ValidationError(
                field="cpu_weight",
                message="Invalid CPU Weight",
                suggestion=f"Use a value between {MIN_CPU_WEIGHT} and {MAX_CPU_WEIGHT}"
            ))

        if options.memory_mb < 0:
            errors.append(ValidationError(field="memory_mb", message="Memory limit must not be negative"))

        if options.disk_mb < 0:
            errors.append(ValidationError(field="disk_mb", message="Disk limit must not be negative"))

        if options.instances < 0:
            errors.append(ValidationError(field="instances", message="Number of instances must not be negative"))

        return errors

    def _limit_warnings(self, options: CreateAppOptions) -> List[ValidationError]:
        warnings = []
        if options.instances == 0:
            warnings.append(ValidationError(
                field="instances",
                message="App will be created with no running instances",
                suggestion="Use 'appctl scale' to start instances later"
            ))
        return warnings


# Global validator instance
validator = ArgumentValidator()


def format_validation_result(result: ValidationResult) -> str:
    """Format validation errors and warnings for display to the user."""
    lines = []

    for error in result.errors:
        lines.append(f"Incorrect Usage: {error.message}")
        if error.suggestion:
            lines.append(f"  {error.suggestion}")

    for warning in result.warnings:
        lines.append(f"Warning: {warning.message}")
        if warning.suggestion:
            lines.append(f"  {warning.suggestion}")

    return "\n".join(lines)
