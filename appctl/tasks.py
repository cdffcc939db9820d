"""One-off task submission and deletion."""

from typing import Any, Dict

from appctl.errors import ClusterError, ExitCode, SubmissionError
from appctl.terminal import TerminalUI, bold, green, red


class TaskRunner:
    """Submits and deletes tasks. Neither operation waits for convergence."""

    def __init__(self, cluster, ui: TerminalUI):
        self.cluster = cluster
        self.ui = ui

    def submit_task(self, definition: Dict[str, Any]) -> ExitCode:
        task_guid = definition.get('task_guid', '')
        try:
            task_guid = self.cluster.submit_task(definition) or task_guid
        except ClusterError as e:
            raise SubmissionError(f"Error submitting {task_guid}: {e}") from e

        self.ui.say_line(green(f"Successfully submitted {task_guid}"))
        return ExitCode.OK

    def delete_task(self, task_guid: str) -> ExitCode:
        self.ui.say_line(f"Deleting the task {bold(task_guid)}")
        try:
            self.cluster.delete_task(task_guid)
        except ClusterError as e:
            self.ui.say_line(f"Error Deleting the task {bold(task_guid)}")
            self.ui.say_line(f"Failure Reason: {red(str(e))}")
            return ExitCode.COMMAND_FAILED

        self.ui.say_line(green("OK"))
        return ExitCode.OK
