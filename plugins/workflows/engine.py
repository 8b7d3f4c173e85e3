"""
Workflow Engine

Execute workflow steps strictly in declared order against an external
tool-invocation capability.
"""

import inspect
import json
import logging
import time
import uuid
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, Tuple, Union

from config import env_manager
from o11y_mcp.types import ToolResult

from .conditions import evaluate_condition
from .definition import OnError, Step, WorkflowDefinition
from .errors import ToolInvocationError, UnresolvedVariableError
from .resources import detect_resources
from .state import (
    CreatedResource,
    HaltReason,
    InvalidTransitionError,
    StepResult,
    StepStatus,
    WORKFLOW_TRANSITIONS,
    WorkflowExecutionResult,
    WorkflowState,
    build_execution_result,
    utcnow,
)
from .variables import VariableResolver

# (tool name, resolved parameters) -> ToolResult, or a raw payload for success.
ToolInvoker = Callable[[str, Dict[str, Any]], Union[Awaitable[Any], Any]]


def _decode_text(text: str) -> Any:
    try:
        return json.loads(text)
    except (TypeError, ValueError):
        return text


def _looks_like_tool_result(response: Any) -> bool:
    if not isinstance(response, Mapping):
        return False
    content = response.get("content")
    return isinstance(content, list) and all(
        isinstance(block, Mapping) and block.get("type") == "text" and "text" in block
        for block in content
    )


def normalize_tool_response(tool: str, response: Any) -> Tuple[Any, str]:
    """
    Turn whatever the invoker returned into (payload, raw text).

    Raises:
        ToolInvocationError: If the response is tagged as an error, either
            as an isError ToolResult or a {"success": False} tool dict
    """
    if _looks_like_tool_result(response):
        response = ToolResult.model_validate(dict(response))

    if isinstance(response, ToolResult):
        text = response.text
        if response.isError:
            raise ToolInvocationError(tool, text or f"Tool '{tool}' reported an error")
        return _decode_text(text), text

    if isinstance(response, Mapping) and response.get("success") is False:
        message = response.get("error") or f"Tool '{tool}' reported an error"
        raise ToolInvocationError(tool, str(message))

    if isinstance(response, str):
        return _decode_text(response), response

    try:
        text = json.dumps(response, default=str)
    except (TypeError, ValueError):
        text = str(response)
    return response, text


def summarize_output(text: str, limit: int) -> str:
    """Bounded human-readable digest of a step's output."""
    text = text.strip()
    if len(text) <= limit:
        return text
    marker = f"... ({len(text) - limit} more chars)"
    return text[:limit] + marker


class WorkflowRun:
    """
    Mutable state of one workflow run.

    Owns the workflow-level state machine, the variable namespace and the
    per-step results. Only the engine drives it, one step at a time.
    """

    def __init__(self, definition: WorkflowDefinition, resolver: VariableResolver):
        self.definition = definition
        self.resolver = resolver
        self.execution_id = str(uuid.uuid4())
        self.state = WorkflowState.NOT_STARTED
        self.results: List[StepResult] = [StepResult.pending(s) for s in definition.steps]
        self.resources: List[CreatedResource] = []
        self.halt_reason: Optional[HaltReason] = None
        self.started_at = utcnow()
        self._started = time.perf_counter()

    def transition(self, state: WorkflowState) -> None:
        if state not in WORKFLOW_TRANSITIONS[self.state]:
            raise InvalidTransitionError(
                f"Workflow run cannot move from {self.state.value} to {state.value}"
            )
        self.state = state

    def halt(self, reason: HaltReason) -> None:
        self.halt_reason = reason
        self.transition(WorkflowState.HALTED)

    def finish(self) -> WorkflowExecutionResult:
        if self.state == WorkflowState.RUNNING:
            self.transition(WorkflowState.COMPLETED)
        return build_execution_result(
            workflow_name=self.definition.name,
            execution_id=self.execution_id,
            step_results=self.results,
            started_at=self.started_at,
            completed_at=utcnow(),
            duration_ms=(time.perf_counter() - self._started) * 1000,
            halt_reason=self.halt_reason,
            created_resources=self.resources,
            variables=self.resolver.snapshot(),
        )


class WorkflowEngine:
    """
    Workflow execution engine.

    Runs steps one at a time, awaiting each tool call before evaluating the
    next step. Tool failures and unresolved variables are recorded on the
    step and handled by its on_error policy; they never escape execute().
    """

    def __init__(
        self,
        output_summary_limit: Optional[int] = None,
        strict_variables: Optional[bool] = None,
    ):
        """
        Initialize workflow engine.

        Args:
            output_summary_limit: Max characters of output kept per step.
                Defaults to the workflow_output_summary_limit setting.
            strict_variables: Reject undeclared run variables. Defaults to
                the workflow_strict_variables setting.
        """
        self.logger = logging.getLogger(__name__)
        self.output_summary_limit = (
            output_summary_limit
            if output_summary_limit is not None
            else env_manager.get_setting("workflow_output_summary_limit", 500)
        )
        self.strict_variables = (
            strict_variables
            if strict_variables is not None
            else env_manager.get_setting("workflow_strict_variables", False)
        )

    async def execute(
        self,
        workflow: WorkflowDefinition,
        variables: Optional[Mapping[str, Any]] = None,
        invoker: Optional[ToolInvoker] = None,
        timeout: Optional[float] = None,
        strict: Optional[bool] = None,
    ) -> WorkflowExecutionResult:
        """
        Execute a workflow.

        Args:
            workflow: Workflow definition
            variables: Caller-supplied run arguments
            invoker: Tool-invocation capability
            timeout: Optional run timeout in seconds, checked between steps.
                Defaults to the workflow_run_timeout setting.
            strict: Override the engine's strict variable policy

        Returns:
            WorkflowExecutionResult with one StepResult per declared step

        Raises:
            ValidationError: If required variables are missing (or, in strict
                mode, undeclared variables are supplied); no step runs
            ValueError: If no invoker is given
        """
        if invoker is None:
            raise ValueError("A tool invoker is required to execute a workflow")
        if timeout is None:
            timeout = env_manager.get_setting("workflow_run_timeout")

        resolver = VariableResolver.initialize(
            workflow,
            variables,
            strict=self.strict_variables if strict is None else strict,
        )
        run = WorkflowRun(workflow, resolver)
        deadline = time.monotonic() + timeout if timeout is not None else None

        self.logger.info(
            f"Starting workflow '{workflow.name}' (execution: {run.execution_id}, "
            f"steps: {len(workflow.steps)})"
        )
        run.transition(WorkflowState.RUNNING)

        for step, step_result in zip(workflow.steps, run.results):
            if deadline is not None and time.monotonic() >= deadline:
                self.logger.warning(
                    f"Workflow '{workflow.name}' timed out before step '{step.id}'"
                )
                run.halt(HaltReason.TIMEOUT)
                break

            await self._execute_step(run, step, step_result, invoker)

            if step_result.status == StepStatus.FAILED:
                if step.on_error == OnError.STOP:
                    self.logger.warning(
                        f"Step '{step.id}' failed with on_error=stop; halting workflow"
                    )
                    run.halt(HaltReason.STEP_FAILED)
                    break
                self.logger.warning(
                    f"Step '{step.id}' failed but continuing (on_error={step.on_error.value}): "
                    f"{step_result.error}"
                )

        result = run.finish()
        self.logger.info(
            f"Workflow '{workflow.name}' finished with status: {result.status.value} "
            f"({result.duration_ms:.0f} ms)"
        )
        return result

    async def _execute_step(
        self,
        run: WorkflowRun,
        step: Step,
        step_result: StepResult,
        invoker: ToolInvoker,
    ) -> None:
        """Drive one step from pending to a terminal status."""
        started = time.perf_counter()
        step_result.started_at = utcnow()

        if step.condition and not evaluate_condition(step.condition, run.resolver.lookup):
            step_result.transition(StepStatus.SKIPPED)
            step_result.completed_at = step_result.started_at
            step_result.duration_ms = 0.0
            step_result.output_summary = f'Skipped: condition "{step.condition}" was false'
            self.logger.info(f"Skipping step '{step.id}': condition was false")
            return

        step_result.transition(StepStatus.RUNNING)
        self.logger.info(f"Executing step '{step.id}' with tool '{step.tool}'")

        try:
            params = run.resolver.interpolate(step.parameters)
            response = invoker(step.tool, params)
            if inspect.isawaitable(response):
                response = await response
            payload, text = normalize_tool_response(step.tool, response)
            resources = detect_resources(step.id, step.tool, payload)
            run.resolver.record_step_output(step.id, payload, text)
            if step.output_mapping:
                run.resolver.apply_output_mapping(step.id, step.output_mapping, payload)
        except (UnresolvedVariableError, ToolInvocationError) as e:
            self._fail(step_result, str(e), started)
            return
        except Exception as e:
            self.logger.error(f"Tool '{step.tool}' failed during step '{step.id}': {e}")
            self._fail(step_result, str(ToolInvocationError(step.tool, str(e))), started)
            return

        run.resources.extend(resources)

        step_result.transition(StepStatus.SUCCESS)
        step_result.completed_at = utcnow()
        step_result.duration_ms = (time.perf_counter() - started) * 1000
        step_result.output_summary = summarize_output(text, self.output_summary_limit)

    def _fail(self, step_result: StepResult, message: str, started: float) -> None:
        step_result.transition(StepStatus.FAILED)
        step_result.completed_at = utcnow()
        step_result.duration_ms = (time.perf_counter() - started) * 1000
        step_result.error = message or "Unknown error"
