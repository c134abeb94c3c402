"""Guided project-creation workflow.

Sequences validation, template copy, customization and finalization as a
declarative step table consumed by one generic loop.  State is saved after
every transition so an interrupted run can be resumed:

    initialization -> validation -> dimension-selection* -> hints* ->
    gate-enforcement* -> feature-validation* -> directory-setup ->
    template-copy -> placeholder-resolution -> setup-script-execution ->
    ide-integration -> finalization

Steps marked ``*`` only run for templates declaring the versioned dimension
schema; otherwise they are recorded as skipped.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any

from rich.markup import escape
from rich.panel import Panel

from create_scaffold.config import Config
from create_scaffold.errors import (
    InputValidationError,
    ScaffoldError,
    WorkflowAbortedByUser,
    WorkflowStepError,
)
from create_scaffold.log import get_logger
from create_scaffold.manifest import TemplateManifest
from create_scaffold.placeholders import get_format, replace_in_tree
from create_scaffold.sandbox.context import SetupContext, create_context
from create_scaffold.sandbox.executor import SandboxExecutor
from create_scaffold.sandbox.tools import SetupTools, create_tools
from create_scaffold.security import (
    has_traversal,
    sanitize_error_message,
    validate_ide,
    validate_project_directory,
)
from create_scaffold.utils import (
    console,
    ensure_dir,
    format_duration,
    print_error,
    print_step_header,
    print_success,
    print_summary_table,
    print_warning,
    remove_path,
)
from create_scaffold.workflow.copy import copy_template
from create_scaffold.workflow.preview import ScaffoldPlan, build_plan
from create_scaffold.workflow.prompts import ConsolePrompt, PromptAdapter
from create_scaffold.workflow.selection import (
    FEATURES_DIMENSION,
    as_list,
    build_selection_record,
    feature_violations,
    gate_violations,
    load_selection_file,
    validate_selection,
    write_selection_record,
)
from create_scaffold.workflow.state import StatePersistence, StepProgress, WorkflowState, utc_now
from create_scaffold.workflow.steps import StepReport, StepResult, StepStatus, WorkflowStep

logger = get_logger("workflow")

RECOVERY_OPTIONS = (
    "Retry this step",
    "Skip this step and continue",
    "Abort the entire setup",
)

CLEANUP_OPTIONS = (
    "Clean up partial setup (recommended)",
    "Leave files as-is for manual recovery",
    "Show detailed error log",
)


class Recovery(str, Enum):
    RETRY = "retry"
    SKIP = "skip"
    ABORT = "abort"


def parse_options(raw: list[str] | tuple[str, ...]) -> dict[str, Any]:
    """Split ``dim=value`` options into a per-dimension mapping.

    Comma-separated values become lists; options without ``=`` are only
    kept in the raw list.
    """
    by_dimension: dict[str, Any] = {}
    for option in raw:
        name, sep, value = option.partition("=")
        if not sep or not name.strip():
            continue
        values = [v.strip() for v in value.split(",") if v.strip()]
        by_dimension[name.strip()] = values if len(values) != 1 else values[0]
    return by_dimension


@dataclass
class WorkflowResult:
    success: bool
    project_directory: Path
    template_name: str
    state: WorkflowState
    reports: list[StepReport] = field(default_factory=list)
    selection_path: Path | None = None


class WorkflowOrchestrator:
    """Creates one project from one resolved template.

    Args:
        config: Global configuration; ``config.workflow.interactive`` decides
            whether failures prompt the operator or use unattended defaults.
        project_directory: Target directory; its name is the project name.
        template_path: Local directory returned by the resolver.
        template_name: Identifier the user asked for, used in messages and
            the selection record file name.
        metadata: The template's manifest.
        placeholders: User-supplied placeholder values.
        options: Raw ``--option`` strings.
        selection_file: Optional pre-recorded ``*.selection.json``.
        ide: Optional editor preset to apply.
        prompt: Operator interaction; defaults to :class:`ConsolePrompt`.
        executor: Setup-script sandbox; built from ``config.sandbox`` if omitted.
    """

    def __init__(
        self,
        config: Config,
        project_directory: str | Path,
        template_path: str | Path,
        template_name: str,
        metadata: TemplateManifest | None = None,
        placeholders: dict[str, str] | None = None,
        options: list[str] | None = None,
        selection_file: str | Path | None = None,
        ide: str | None = None,
        repo_url: str | None = None,
        branch: str | None = None,
        prompt: PromptAdapter | None = None,
        executor: SandboxExecutor | None = None,
    ) -> None:
        self.config = config
        self.project_directory = Path(project_directory)
        self.resolved_project_directory = self.project_directory.expanduser().resolve()
        self.template_path = Path(template_path)
        self.template_name = template_name
        self.metadata = metadata or TemplateManifest.fallback(Path(template_path).name)
        self.placeholders = dict(placeholders or {})
        self.raw_options = list(options or [])
        self.option_selections = parse_options(self.raw_options)
        self.selection_file = selection_file
        self.ide = ide
        self.prompt: PromptAdapter = prompt or ConsolePrompt()
        self.executor = executor or SandboxExecutor(timeout=config.sandbox.timeout)
        self.interactive = config.workflow.interactive
        self.max_retry_attempts = config.workflow.max_retry_attempts

        self.persistence = StatePersistence(
            self.resolved_project_directory / config.workflow.state_file
        )
        self.state = WorkflowState(
            project_directory=str(self.project_directory),
            template_name=template_name,
            repo_url=repo_url,
            branch_name=branch,
            options={"raw": self.raw_options, "by_dimension": self.option_selections},
            placeholders=self.placeholders,
        )
        self.reports: list[StepReport] = []
        self.selection_path: Path | None = None
        self._owns_project_directory = False
        self.steps = self._build_steps()

    # ------------------------------------------------------------------
    # Step table
    # ------------------------------------------------------------------

    def _build_steps(self) -> list[WorkflowStep]:
        versioned = lambda: self.metadata.is_versioned  # noqa: E731
        return [
            WorkflowStep("initialization", self.step_initialization, "Preparing setup environment"),
            WorkflowStep(
                "validation",
                self.step_validation,
                "Validating inputs and requirements",
                critical=True,
            ),
            WorkflowStep(
                "dimension-selection",
                self.step_dimension_selection,
                "Choosing template options",
                condition=versioned,
            ),
            WorkflowStep("hints", self.step_hints, "Showing template guidance", condition=versioned),
            WorkflowStep(
                "gate-enforcement",
                self.step_gate_enforcement,
                "Checking platform constraints",
                condition=versioned,
            ),
            WorkflowStep(
                "feature-validation",
                self.step_feature_validation,
                "Checking feature requirements",
                condition=versioned,
            ),
            WorkflowStep(
                "directory-setup",
                self.step_directory_setup,
                "Creating project directory structure",
                critical=True,
            ),
            WorkflowStep(
                "template-copy",
                self.step_template_copy,
                "Copying template files to project",
                critical=True,
            ),
            WorkflowStep(
                "placeholder-resolution",
                self.step_placeholder_resolution,
                "Resolving template placeholders",
            ),
            WorkflowStep(
                "setup-script-execution",
                self.step_setup_script,
                "Running template setup script",
                warn_on_failure=True,
            ),
            WorkflowStep("ide-integration", self.step_ide_integration, "Configuring IDE settings"),
            WorkflowStep("finalization", self.step_finalization, "Completing setup and cleanup"),
        ]

    # ------------------------------------------------------------------
    # Main loop
    # ------------------------------------------------------------------

    async def run(self) -> WorkflowResult:
        """Execute every pending step.

        Raises:
            ScaffoldError: A critical step failed or the operator aborted.
        """
        started = time.monotonic()
        self._owns_project_directory = (
            not self.resolved_project_directory.exists() or self.persistence.exists()
        )
        self._load_state()
        self._print_header()

        total = len(self.steps)
        try:
            for index, step in enumerate(self.steps):
                self.state.current_step = step.name
                self.state.progress = StepProgress(index=index, total=total)

                if not step.applies():
                    self.state.mark_skipped(step.name)
                    self.reports.append(StepReport(step.name, StepStatus.SKIPPED, "Not applicable"))
                    logger.debug("step %s skipped: condition not met", step.name)
                    await self._save_state()
                    continue

                if not self.state.should_run(step.name):
                    self.reports.append(
                        StepReport(step.name, StepStatus.SKIPPED, "Already completed")
                    )
                    logger.debug("step %s already completed", step.name)
                    continue

                print_step_header(index + 1, total, f"{step.title}: {step.description}")
                await self._execute_step(step)
                await self._save_state()
        except Exception as exc:
            await self._handle_workflow_error(exc)
            raise

        self.state.final_status = "completed"
        self.state.end_time = utc_now()
        self._print_completion(time.monotonic() - started)
        return WorkflowResult(
            success=True,
            project_directory=self.resolved_project_directory,
            template_name=self.template_name,
            state=self.state,
            reports=self.reports,
            selection_path=self.selection_path,
        )

    async def preview(self) -> ScaffoldPlan:
        """Report what :meth:`run` would create, writing nothing.

        Only the read-only initialization and validation steps execute.
        Neither the project directory nor the state file is created.

        Raises:
            ScaffoldError: Validation failed.
        """
        await self.step_initialization()
        await self.step_validation()
        values, missing = self._placeholder_values()
        return build_plan(
            self.template_path,
            self.resolved_project_directory,
            self.template_name,
            values,
            missing,
            get_format(self.metadata.placeholder_format),
            self.config.sandbox.script_name,
            self._author_assets_dir(),
            extra_ignored=(self.persistence.path.name,),
        )

    async def _save_state(self) -> None:
        # A directory the operator already had is only written to once
        # validation has accepted it.
        if self._owns_project_directory or "validation" in self.state.completed_steps:
            await self.persistence.save(self.state)

    async def _execute_step(self, step: WorkflowStep) -> None:
        attempts = 0
        while True:
            try:
                result = await step.action()
                if not result.success:
                    raise WorkflowStepError(
                        step.name, result.message or "Step failed", retryable=result.retryable
                    )
            except WorkflowAbortedByUser:
                raise
            except Exception as exc:
                message = sanitize_error_message(
                    exc.message if isinstance(exc, ScaffoldError) else str(exc)
                )
                self.state.mark_failed(step.name, message)
                print_error(f"{step.title} failed: {message}")

                if step.critical:
                    await self._save_state()
                    raise

                if step.warn_on_failure:
                    warning = f"Warning: {step.title} failed, continuing with setup ({message})"
                    logger.warning(warning)
                    print_warning(warning)
                    self.state.add_warning(warning)
                    self.state.mark_completed(step.name)
                    self.reports.append(StepReport(step.name, StepStatus.COMPLETED, warning))
                    return

                decision = self._recovery_decision(exc, attempts)
                if decision is Recovery.RETRY:
                    attempts += 1
                    self.state.retry_count += 1
                    logger.info(
                        "retrying %s (attempt %d/%d)", step.name, attempts, self.max_retry_attempts
                    )
                    await self._save_state()
                    continue
                if decision is Recovery.SKIP:
                    self.state.add_warning(f"Skipped {step.name}: {message}")
                    self.reports.append(StepReport(step.name, StepStatus.FAILED, message))
                    return
                raise WorkflowAbortedByUser(step.name) from exc

            self.state.mark_completed(step.name)
            self.reports.append(StepReport(step.name, StepStatus.COMPLETED, result.message))
            print_success(f"{step.title}: {result.message}" if result.message else step.title)
            return

    def _recovery_decision(self, exc: Exception, attempts: int) -> Recovery:
        retryable = getattr(exc, "retryable", True) and not isinstance(exc, InputValidationError)
        exhausted = attempts >= self.max_retry_attempts

        if not self.interactive:
            if retryable and not exhausted:
                return Recovery.RETRY
            return Recovery.SKIP

        self.prompt.write("Recovery options:")
        choice = self.prompt.choose("Choose an option", RECOVERY_OPTIONS)
        if choice == 0:
            if exhausted:
                self.prompt.write("Maximum retry attempts reached. Skipping step.")
                return Recovery.SKIP
            return Recovery.RETRY
        if choice == 1:
            self.prompt.write("Skipping failed step. Continuing with setup.")
            return Recovery.SKIP
        return Recovery.ABORT

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------

    async def step_initialization(self) -> StepResult:
        if not str(self.project_directory).strip():
            raise WorkflowStepError("initialization", "Project directory not specified", False)
        if not str(self.template_path).strip():
            raise WorkflowStepError("initialization", "Template path not resolved", False)
        if self.state.resumed:
            return StepResult.ok("Resuming previous workflow")
        return StepResult.ok("Workflow initialized")

    async def step_validation(self) -> StepResult:
        validate_project_directory(self.project_directory)
        if has_traversal(self.template_name) or "\x00" in self.template_name:
            raise InputValidationError(
                f"Template name contains path traversal attempts: {self.template_name}"
            )

        if self.resolved_project_directory.is_dir():
            leftovers = sorted(
                entry.name
                for entry in self.resolved_project_directory.iterdir()
                if entry.name != self.persistence.path.name
            )
            if leftovers:
                raise InputValidationError(
                    f"Project directory is not empty: {', '.join(leftovers)}",
                    suggestions=["Choose a new project name or remove the existing directory"],
                )
        elif self.resolved_project_directory.exists():
            raise InputValidationError(
                f"Project path exists and is not a directory: {self.project_directory}"
            )

        if not self.template_path.is_dir():
            raise InputValidationError(
                "Template not accessible",
                suggestions=[
                    "Verify the template exists and is accessible",
                    "Check the template path for typos",
                    "Ensure you have permission to access the template",
                ],
                technical_details=f"Template path: {self.template_path}",
            )
        return StepResult.ok("All validations passed")

    async def step_dimension_selection(self) -> StepResult:
        dimensions = self.metadata.all_dimensions()
        if not dimensions:
            return StepResult.ok("No dimensions to select")

        selections = self.state.dimension_selections
        if not selections and self.selection_file:
            loaded = self._selections_from_file()
            if loaded is not None:
                self.state.dimension_selections = loaded
                return StepResult.ok(f"Dimension selection loaded from {self.selection_file}")

        for name, dimension in dimensions.items():
            if name in selections:
                continue
            choices = dimension.choices()
            if name in self.option_selections:
                value = self.option_selections[name]
                unknown = [v for v in as_list(value) if choices and v not in choices]
                if unknown:
                    return StepResult.fail(
                        f"Invalid value '{unknown[0]}' for dimension '{name}'. "
                        f"Allowed: {', '.join(choices)}",
                        retryable=False,
                    )
                selections[name] = as_list(value) if dimension.is_multi else as_list(value)[0]
                continue
            if not choices:
                logger.info("No options available for dimension %s", name)
                continue
            if self.interactive:
                self.prompt.write(f"Dimension: {name}")
                if dimension.description:
                    self.prompt.write(dimension.description)
                picked = choices[self.prompt.choose(f"Select option for {name}", choices)]
                selections[name] = [picked] if dimension.is_multi else picked
                self.prompt.write(f"Selected: {picked}")
            elif dimension.is_multi:
                selections[name] = as_list(dimension.default)
            else:
                default = dimension.default if isinstance(dimension.default, str) else None
                selections[name] = default or choices[0]

        return StepResult.ok("Dimension selection completed")

    def _selections_from_file(self) -> dict[str, Any] | None:
        try:
            data = load_selection_file(self.selection_file)
        except InputValidationError as exc:
            self.prompt.write(f"Failed to load selection file: {exc.message}")
            return None

        selections = data.get("selections")
        expected_version = self.metadata.schema_version or "1.0.0"
        if (
            not isinstance(selections, dict)
            or data.get("templateId") != self.metadata.id
            or data.get("version") != expected_version
        ):
            self.prompt.write("Selection file doesn't match current template, choosing options again")
            return None

        cleaned = {k: v for k, v in selections.items() if v is not None}
        problems = validate_selection(cleaned, self.metadata)
        if problems:
            self.prompt.write("Loaded selections are invalid:")
            for problem in problems:
                self.prompt.write(f"  - {problem}")
            return None
        return cleaned

    async def step_hints(self) -> StepResult:
        hints = self.metadata.hints
        selections = self.state.dimension_selections
        if not hints:
            return StepResult.ok("No hints to display")

        shown = 0
        for feature in as_list(selections.get(FEATURES_DIMENSION)):
            hint = hints.get(FEATURES_DIMENSION, {}).get(feature)
            if hint is None:
                continue
            self.prompt.write(f"{hint.label or feature}: {hint.description}".rstrip(": "))
            if hint.category:
                self.prompt.write(f"  Category: {hint.category}")
            if hint.tags:
                self.prompt.write(f"  Tags: {', '.join(hint.tags)}")
            shown += 1

        for dimension, value in selections.items():
            if dimension == FEATURES_DIMENSION:
                continue
            for item in as_list(value):
                hint = hints.get(dimension, {}).get(item)
                if hint is None:
                    continue
                self.prompt.write(f"{dimension} - {item}: {hint.description}".rstrip(": "))
                if hint.category:
                    self.prompt.write(f"  Category: {hint.category}")
                shown += 1

        return StepResult.ok(f"Displayed {shown} hint(s)")

    async def step_gate_enforcement(self) -> StepResult:
        if not self.metadata.gates:
            return StepResult.ok("No gates to enforce")
        violations = gate_violations(self.metadata.gates, self.state.dimension_selections)
        if violations:
            return self._report_violations("Gate enforcement", [v.message for v in violations])
        return StepResult.ok("Gate enforcement passed")

    async def step_feature_validation(self) -> StepResult:
        if not self.metadata.feature_specs:
            return StepResult.ok("No feature specs to validate")
        violations = feature_violations(
            self.metadata.feature_specs, self.state.dimension_selections
        )
        if violations:
            return self._report_violations("Feature validation", [v.message for v in violations])
        return StepResult.ok("Feature validation passed")

    def _report_violations(self, label: str, messages: list[str]) -> StepResult:
        self.prompt.write(f"{label} violations:")
        for message in messages:
            self.prompt.write(f"  - {message}")
        self.prompt.write("Please adjust your selections to resolve these conflicts.")
        return StepResult.fail(f"{label} violations detected: {'; '.join(messages)}", retryable=False)

    async def step_directory_setup(self) -> StepResult:
        ensure_dir(self.resolved_project_directory)
        return StepResult.ok(f"Project directory ready at {self.project_directory}")

    async def step_template_copy(self) -> StepResult:
        copied = await copy_template(
            self.template_path,
            self.resolved_project_directory,
            extra_ignored=[self.persistence.path.name],
        )
        return StepResult.ok(f"Copied {copied} template file(s)")

    def _placeholder_values(self) -> tuple[dict[str, str], list[str]]:
        """Supplied values over manifest defaults, plus required names with neither."""
        values: dict[str, str] = {}
        missing: list[str] = []
        for spec in self.metadata.placeholders:
            if spec.name in self.placeholders:
                continue
            if spec.default is not None:
                values[spec.name] = spec.default
            elif spec.required:
                missing.append(spec.name)
        values.update(self.placeholders)
        return values, missing

    async def step_placeholder_resolution(self) -> StepResult:
        values, missing = self._placeholder_values()
        if missing:
            return StepResult.fail(
                f"Missing required placeholders: {', '.join(missing)}", retryable=False
            )

        self.state.placeholders = values
        if not values:
            return StepResult.ok("No placeholders to resolve")

        fmt = get_format(self.metadata.placeholder_format)
        root = self.resolved_project_directory
        changed = replace_in_tree(
            root,
            values,
            fmt,
            exclude=[root / self.config.sandbox.script_name, root / self._author_assets_dir()],
        )
        logger.info("Resolved %d placeholder(s) in %d file(s)", len(values), len(changed))
        return StepResult.ok(f"Resolved {len(values)} placeholder(s) in {len(changed)} file(s)")

    async def step_setup_script(self) -> StepResult:
        script = self.resolved_project_directory / self.config.sandbox.script_name
        if not script.is_file():
            return StepResult.ok("No setup script found (optional)")
        try:
            ctx, tools = self._sandbox_capabilities()
            await self.executor.run_file(script, ctx, tools)
        finally:
            try:
                script.unlink()
            except FileNotFoundError:
                pass
        return StepResult.ok("Setup script executed")

    async def step_ide_integration(self) -> StepResult:
        ide = validate_ide(self.ide)
        if ide is None:
            return StepResult.ok("No IDE integration requested")
        _, tools = self._sandbox_capabilities()
        written = tools.ide.apply_preset(ide)
        return StepResult.ok(f"{ide} integration configured ({len(written)} file(s))")

    async def step_finalization(self) -> StepResult:
        if self.metadata.is_versioned:
            target_dir = self.config.workflow.selection_dir or self.resolved_project_directory.parent
            record = build_selection_record(
                self.metadata, self.state.dimension_selections, self.project_directory.name
            )
            try:
                self.selection_path = write_selection_record(
                    record, Path(target_dir), self.metadata.id or self.template_name
                )
                logger.info("Generated %s", self.selection_path)
            except OSError as exc:
                warning = f"Failed to write selection record: {exc}"
                logger.warning(warning)
                self.state.add_warning(warning)

        remove_path(self.resolved_project_directory / self._author_assets_dir())
        self.persistence.delete()
        self.persistence.close()
        return StepResult.ok("Project setup finalized")

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _author_assets_dir(self) -> str:
        return self.metadata.setup.author_assets_dir or "__scaffold__"

    def _sandbox_capabilities(self) -> tuple[SetupContext, SetupTools]:
        by_dimension = dict(self.option_selections)
        by_dimension.update(self.state.dimension_selections)
        ctx = create_context(
            project_name=self.project_directory.name,
            project_directory=self.resolved_project_directory,
            cwd=Path.cwd(),
            authoring=self.metadata.setup.authoring,
            author_assets_dir=self._author_assets_dir(),
            inputs=self.state.placeholders or self.placeholders,
            constants=self.metadata.constants,
            options={"raw": self.raw_options, "by_dimension": by_dimension},
        )
        tools = create_tools(ctx, self.metadata.placeholder_format, get_logger("setup"))
        return ctx, tools

    def _load_state(self) -> None:
        previous = self.persistence.load()
        if previous is None:
            return
        # Inputs of this run win over what the previous run recorded.
        previous.options = self.state.options
        if self.placeholders:
            previous.placeholders = self.placeholders
        self.state = previous
        logger.info(
            "Resuming workflow: %d completed, %d failed",
            len(previous.completed_steps),
            len(previous.failed_steps),
        )

    async def _handle_workflow_error(self, exc: Exception) -> None:
        message = sanitize_error_message(exc.message if isinstance(exc, ScaffoldError) else str(exc))
        print_error(f"Setup workflow failed: {message}")
        if isinstance(exc, ScaffoldError) and exc.suggestions:
            for suggestion in exc.suggestions:
                console.print(f"  - {suggestion}", markup=False)

        self.state.end_time = utc_now()
        self.state.final_status = "failed"
        await self._save_state()

        if not self.interactive:
            self.cleanup_partial_setup()
            return

        try:
            choice = self.prompt.choose("Choose cleanup option", CLEANUP_OPTIONS)
        except Exception as prompt_exc:
            logger.warning("Cleanup prompt failed (%s); cleaning up", prompt_exc)
            self.cleanup_partial_setup()
            return

        if choice == 0:
            self.cleanup_partial_setup()
            self.prompt.write("Partial setup cleaned up.")
        elif choice == 1:
            self.prompt.write("Files left as-is. You can manually recover or restart.")
        else:
            self.show_error_log()

    def cleanup_partial_setup(self) -> None:
        """Delete the partial project, or only the state file if the directory pre-existed."""
        try:
            if self._owns_project_directory:
                remove_path(self.resolved_project_directory)
            else:
                self.persistence.delete()
        except OSError as exc:
            print_warning(f"Could not clean up project directory: {exc}")
        self.persistence.close()

    def show_error_log(self) -> None:
        self.prompt.write("Detailed error log:")
        for index, record in enumerate(self.state.errors, start=1):
            self.prompt.write(f"{index}. {record.step} ({record.timestamp})")
            self.prompt.write(f"   {record.error}")

    # ------------------------------------------------------------------
    # Output
    # ------------------------------------------------------------------

    def _print_header(self) -> None:
        console.print(
            Panel(
                f"[bold bright_cyan]create-scaffold[/bold bright_cyan]\n"
                f"Project  : {escape(str(self.project_directory))}\n"
                f"Template : {escape(self.template_name)}\n"
                f"Mode     : {'interactive' if self.interactive else 'unattended'}"
                + ("\n[yellow]Resuming previous workflow[/yellow]" if self.state.resumed else ""),
                title="[bold]Guided Setup[/bold]",
                border_style="bright_cyan",
            )
        )

    def _print_completion(self, elapsed: float) -> None:
        completed = [r.name for r in self.reports if r.status is StepStatus.COMPLETED]
        skipped = [r.name for r in self.reports if r.status is StepStatus.SKIPPED]
        failed = [r.name for r in self.reports if r.status is StepStatus.FAILED]

        lines = [
            "[bold green]Project created successfully[/bold green]",
            "",
            f"Location  : {escape(str(self.resolved_project_directory))}",
            f"Template  : {escape(self.template_name)}",
            f"Duration  : {format_duration(elapsed)}",
            f"Completed : {len(completed)} step(s)",
        ]
        if skipped:
            lines.append(f"Skipped   : {', '.join(skipped)}")
        if failed:
            lines.append(f"Failed    : {', '.join(failed)}")
        if self.state.warnings:
            lines.append("")
            lines.append(f"Warnings  : {len(self.state.warnings)}")
            lines.extend(f"  - {escape(w)}" for w in self.state.warnings)

        handoff = self.metadata.handoff_steps or ["Review README.md for additional instructions"]
        lines.extend(["", "Next steps:", f"  cd {escape(str(self.project_directory))}"])
        lines.extend(f"  - {escape(step)}" for step in handoff)
        if self.ide:
            lines.append(f"  - Open {escape(str(self.project_directory))} in {escape(self.ide)}")

        console.print()
        print_summary_table(
            {
                report.name: f"{report.status.value}: {report.message}" if report.message else report.status.value
                for report in self.reports
            },
            title="Workflow steps",
            headers=("Step", "Status"),
        )
        console.print(
            Panel("\n".join(lines), title="[bold]Setup Complete[/bold]", border_style="bold green")
        )
