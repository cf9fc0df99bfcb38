# sensor/calibration/view.py

from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any, Dict, Optional

from sensor.calibration.phase import PENDING_PHASES, WorkflowPhase

GO_OUTSIDE_TEXT = (
    "The outdoor air has a fairly consistent concentration of CO2. "
    "This well-known concentration will be used as a reference to calibrate "
    "the sensor. Click next once the device is outdoors."
)
CALIBRATING_TEXT = (
    "The sensor has started the calibration process. It takes several "
    "measurements for the sensor to calibrate itself, so this step may take "
    "up to a minute or two."
)


class OperationButtonOp(Enum):
    CALIBRATE = "calibrate"
    CANCEL = "cancel"


@dataclass(frozen=True)
class OperationButton:
    op: OperationButtonOp
    text: str
    variant: str
    disabled: bool = False


def operation_button(op: OperationButtonOp, disabled: bool = False) -> OperationButton:
    if op is OperationButtonOp.CALIBRATE:
        return OperationButton(op, "Calibrate", "primary", disabled)
    return OperationButton(op, "Cancel", "danger", disabled)


@dataclass(frozen=True)
class WizardView:
    """
    Frontend contract (keep stable).
    Everything the browser needs to draw the wizard; no derived state lives client-side.
    """
    phase: Optional[str]
    is_open: bool
    header: OperationButton
    body: str                        # "go_outside" | "calibrating" | "successful" | "unmounted"
    title: str
    text: str
    status: Optional[str]            # disabled status button under the calibrating body
    submit_disabled: bool
    elevation: Optional[int]
    error: Optional[str]
    error_kind: Optional[str]
    revision: int

    def to_dict(self) -> Dict[str, Any]:
        d = asdict(self)
        d["header"]["op"] = self.header.op.value
        return d


def render(snapshot: Dict[str, Any]) -> WizardView:
    phase_value = snapshot.get("phase")
    phase = WorkflowPhase(phase_value) if phase_value else None
    submitting = bool(snapshot.get("submitting"))

    common = dict(
        phase=phase_value,
        elevation=snapshot.get("elevation"),
        error=snapshot.get("error"),
        error_kind=snapshot.get("error_kind"),
        revision=int(snapshot.get("revision", 0)),
    )

    if phase is None:
        return WizardView(
            is_open=False,
            header=operation_button(OperationButtonOp.CALIBRATE, disabled=True),
            body="unmounted", title="", text="", status=None, submit_disabled=True,
            **common,
        )

    pending = phase in PENDING_PHASES
    op = OperationButtonOp.CALIBRATE if phase is WorkflowPhase.CLOSED else OperationButtonOp.CANCEL
    header = operation_button(op, disabled=not pending)

    if pending:
        return WizardView(
            is_open=phase is not WorkflowPhase.CLOSED,
            header=header,
            body="go_outside",
            title="Go Outside",
            text=GO_OUTSIDE_TEXT,
            status=None,
            submit_disabled=submitting,
            **common,
        )

    successful = phase is WorkflowPhase.SUCCEEDED
    return WizardView(
        is_open=True,
        header=header,
        body="successful" if successful else "calibrating",
        title="Wait for Calibration",
        text=CALIBRATING_TEXT,
        status="Calibration Successful" if successful else "Calibrating...",
        submit_disabled=True,
        **common,
    )
