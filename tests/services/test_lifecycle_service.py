"""
AssetLifecycleService: repair workflow transitions at the maintenance center.
"""

from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy import func, select

from asset_kernel.domain.dtos import TransferRequest, TransitionContext, ViolationCode
from asset_kernel.domain.notifications import NotificationType
from asset_kernel.exceptions import (
    AssetNotFoundError,
    InvalidTransitionError,
    OrderStateError,
    TransitionGuardError,
    ValidationError,
)
from asset_kernel.models.asset import MachineStatus
from asset_kernel.models.maintenance import (
    MaintenanceApproval,
    MaintenanceRequestStatus,
)
from asset_kernel.models.movement_log import MovementLogEntry
from asset_kernel.models.transfer_order import TransferOrder
from asset_kernel.selectors.movement_selector import MovementSelector
from asset_kernel.services.audit_log_service import AuditLogService


@pytest.fixture
def at_center(make_machine, branches):
    """Machine already taken in at the center, shipped from branch A."""

    def _make(serial="SN-1", status=MachineStatus.RECEIVED_AT_CENTER, **fields):
        return make_machine(
            serial, branches.center, status, origin_branch_id=branches.a, **fields
        )

    return _make


def _movements(session) -> int:
    return session.execute(select(func.count(MovementLogEntry.id))).scalar_one()


class TestValidTransitions:

    def test_start_inspection(self, lifecycle, session, at_center, center_tech):
        machine = at_center()
        tech_id = uuid4()

        info = lifecycle.transition(
            machine.id,
            "UNDER_INSPECTION",
            TransitionContext(center_tech, payload={"technician_id": tech_id}),
        )

        assert info.status == "UNDER_INSPECTION"
        assert info.technician_id == tech_id
        session.refresh(machine)
        assert machine.status == MachineStatus.UNDER_INSPECTION.value

    def test_transition_logged(self, lifecycle, session, at_center, center_tech):
        machine = at_center()

        lifecycle.transition(
            machine.id, "UNDER_INSPECTION", TransitionContext(center_tech, notes="bench 3")
        )

        (entry,) = MovementSelector(session).history_for_serial("SN-1")
        assert entry.action == "transition"
        assert entry.details["from_status"] == "RECEIVED_AT_CENTER"
        assert entry.details["to_status"] == "UNDER_INSPECTION"
        assert entry.details["workflow_action"] == "start_inspection"
        assert entry.details["notes"] == "bench 3"
        system = MovementSelector(session).system_entries_for("Machine", machine.id)
        assert [e.action for e in system] == ["TRANSITION_UNDER_INSPECTION"]

    def test_payload_cannot_rewrite_audit_fields(self, lifecycle, session, at_center, center_tech):
        machine = at_center("SN-2")

        lifecycle.transition(
            machine.id,
            "UNDER_INSPECTION",
            TransitionContext(
                center_tech, payload={"from_status": "NEW", "request_id": "forged"}
            ),
        )

        (entry,) = MovementSelector(session).history_for_serial("SN-2")
        assert entry.details["from_status"] == "RECEIVED_AT_CENTER"
        assert entry.details["request_id"] is None
        assert entry.details["payload"] == {"from_status": "NEW", "request_id": "forged"}

    def test_notifies_origin_branch(self, lifecycle, publisher, branches, at_center, center_tech):
        machine = at_center()

        lifecycle.transition(machine.id, "UNDER_INSPECTION", TransitionContext(center_tech))

        (event,) = publisher.events
        assert event.type == NotificationType.MAINTENANCE_TRANSITION
        assert event.branch_id == branches.a
        assert event.link == "/maintenance/machines?serial=SN-1"
        assert event.data["to_status"] == "UNDER_INSPECTION"

    def test_approval_quote_recorded(
        self, lifecycle, session, branches, at_center, center_tech, make_request
    ):
        machine = at_center(status=MachineStatus.UNDER_INSPECTION)
        request = make_request("SN-1", branches.a)

        lifecycle.transition(
            machine.id,
            "AWAITING_APPROVAL",
            TransitionContext(
                center_tech,
                notes="screen and battery",
                payload={"cost": "150.00", "parts": ["screen", "battery"]},
            ),
        )

        approval = session.execute(
            select(MaintenanceApproval).where(MaintenanceApproval.request_id == request.id)
        ).scalar_one()
        assert approval.cost == Decimal("150.00")
        assert approval.parts == ["screen", "battery"]
        assert approval.status == "PENDING"
        (entry,) = MovementSelector(session).history_for_serial("SN-1")
        assert entry.details["payload"]["cost"] == "150.00"
        assert entry.details["request_id"] == str(request.id)

    def test_second_quote_updates_approval(
        self, lifecycle, session, branches, at_center, center_tech, make_request, clock
    ):
        machine = at_center(status=MachineStatus.UNDER_INSPECTION)
        make_request("SN-1", branches.a)
        lifecycle.transition(
            machine.id, "AWAITING_APPROVAL", TransitionContext(center_tech, payload={"cost": 100})
        )
        # no workflow edge leads back to inspection; reset the row directly
        machine.status = MachineStatus.UNDER_INSPECTION.value
        session.commit()
        clock.advance(60)

        lifecycle.transition(
            machine.id, "AWAITING_APPROVAL", TransitionContext(center_tech, payload={"cost": 120})
        )

        approvals = session.execute(select(MaintenanceApproval)).scalars().all()
        assert len(approvals) == 1
        assert approvals[0].cost == Decimal("120")

    def test_full_repair_cycle_closes_request(
        self, lifecycle, session, branches, at_center, center_tech, make_request, clock
    ):
        machine = at_center(technician_id=uuid4())
        request = make_request("SN-1", branches.a)
        steps = [
            ("UNDER_INSPECTION", {}),
            ("IN_PROGRESS", {}),
            ("READY_FOR_RETURN", {"resolution": "REPAIRED"}),
            ("RETURNING", {}),
            ("COMPLETED", {}),
        ]

        for target, payload in steps:
            clock.advance(60)
            info = lifecycle.transition(machine.id, target, TransitionContext(center_tech, payload=payload))

        assert info.status == "COMPLETED"
        assert info.resolution == "REPAIRED"
        assert info.technician_id is None
        session.refresh(request)
        assert request.status == MaintenanceRequestStatus.CLOSED.value
        history = MovementSelector(session).history_for_serial("SN-1")
        assert [h.details["to_status"] for h in history] == [s for s, _ in steps]

    def test_center_intake_then_repair(
        self, orchestrator, lifecycle, session, branches, actor_a, center_tech, make_machine, clock
    ):
        machine = make_machine("SN-1", branches.a, MachineStatus.DEFECTIVE)
        order = orchestrator.create_transfer_order(
            TransferRequest(branches.a, branches.center, "MAINTENANCE", ("SN-1",)), actor_a
        )
        clock.advance(60)
        orchestrator.receive_transfer_order(order.id, center_tech)
        clock.advance(60)

        info = lifecycle.transition(machine.id, "UNDER_INSPECTION", TransitionContext(center_tech))

        assert info.origin_branch_id == branches.a
        history = MovementSelector(session).history_for_serial("SN-1")
        assert [h.action for h in history] == ["created", "received", "transition"]


class TestRejectedTransitions:

    def test_edge_not_in_table(self, lifecycle, session, at_center, center_tech):
        machine = at_center()

        with pytest.raises(InvalidTransitionError) as exc_info:
            lifecycle.transition(machine.id, "COMPLETED", TransitionContext(center_tech))

        assert exc_info.value.from_status == "RECEIVED_AT_CENTER"
        assert exc_info.value.allowed == ("UNDER_INSPECTION",)
        assert _movements(session) == 0
        session.refresh(machine)
        assert machine.status == MachineStatus.RECEIVED_AT_CENTER.value

    def test_same_state_rejected(self, lifecycle, at_center, center_tech):
        machine = at_center()

        with pytest.raises(InvalidTransitionError):
            lifecycle.transition(machine.id, "RECEIVED_AT_CENTER", TransitionContext(center_tech))

    def test_machine_outside_workflow(self, lifecycle, make_machine, branches, center_tech):
        machine = make_machine("SN-1", branches.a, MachineStatus.STANDBY)

        with pytest.raises(InvalidTransitionError) as exc_info:
            lifecycle.transition(machine.id, "UNDER_INSPECTION", TransitionContext(center_tech))

        assert exc_info.value.allowed == ()

    def test_resolution_required(self, lifecycle, session, at_center, center_tech):
        machine = at_center(status=MachineStatus.IN_PROGRESS)

        with pytest.raises(TransitionGuardError) as exc_info:
            lifecycle.transition(machine.id, "READY_FOR_RETURN", TransitionContext(center_tech))

        assert exc_info.value.guard == "resolution_required"
        assert exc_info.value.code == "TRANSITION_GUARD"
        assert _movements(session) == 0

    def test_unknown_resolution(self, lifecycle, at_center, center_tech):
        machine = at_center(status=MachineStatus.IN_PROGRESS)

        with pytest.raises(TransitionGuardError):
            lifecycle.transition(
                machine.id,
                "READY_FOR_RETURN",
                TransitionContext(center_tech, payload={"resolution": "GLUED"}),
            )

    def test_completion_without_resolution(self, lifecycle, at_center, center_tech):
        machine = at_center(status=MachineStatus.RETURNING)

        with pytest.raises(TransitionGuardError) as exc_info:
            lifecycle.transition(machine.id, "COMPLETED", TransitionContext(center_tech))

        assert exc_info.value.guard == "resolution_recorded"

    def test_unknown_machine(self, lifecycle, center_tech, captured_logs):
        with pytest.raises(AssetNotFoundError):
            lifecycle.transition(uuid4(), "UNDER_INSPECTION", TransitionContext(center_tech))

        rejected = [r for r in captured_logs() if r["message"] == "transition_rejected"]
        assert rejected[0]["error_code"] == "ASSET_NOT_FOUND"

    def test_bad_cost_rolls_back(
        self, lifecycle, session, branches, at_center, center_tech, make_request
    ):
        machine = at_center(status=MachineStatus.UNDER_INSPECTION)
        make_request("SN-1", branches.a)

        with pytest.raises(ValidationError) as exc_info:
            lifecycle.transition(
                machine.id,
                "AWAITING_APPROVAL",
                TransitionContext(center_tech, payload={"cost": "a lot"}),
            )

        (violation,) = exc_info.value.violations
        assert violation.code == ViolationCode.INVALID_PAYLOAD
        assert violation.details == {"field": "cost", "value": "a lot"}

        session.refresh(machine)
        assert machine.status == MachineStatus.UNDER_INSPECTION.value
        assert session.execute(select(MaintenanceApproval)).first() is None

    def test_bad_technician_id(self, lifecycle, session, at_center, center_tech, captured_logs):
        machine = at_center()

        with pytest.raises(ValidationError) as exc_info:
            lifecycle.transition(
                machine.id,
                "UNDER_INSPECTION",
                TransitionContext(center_tech, payload={"technician_id": "bob"}),
            )

        assert exc_info.value.violations[0].details == {"field": "technician_id", "value": "bob"}
        session.refresh(machine)
        assert machine.status == MachineStatus.RECEIVED_AT_CENTER.value
        assert machine.technician_id is None
        messages = [r["message"] for r in captured_logs()]
        assert "transition_rejected" in messages
        assert "transition_failed" not in messages

    def test_log_failure_leaves_state_unchanged(
        self, lifecycle, session, publisher, at_center, center_tech, monkeypatch
    ):
        machine = at_center()

        def _boom(self, **kwargs):
            raise RuntimeError("log table unavailable")

        monkeypatch.setattr(AuditLogService, "record_movement", _boom)

        with pytest.raises(RuntimeError):
            lifecycle.transition(machine.id, "UNDER_INSPECTION", TransitionContext(center_tech))

        session.refresh(machine)
        assert machine.status == MachineStatus.RECEIVED_AT_CENTER.value
        assert publisher.events == ()


class TestOrderHeldMachines:

    def test_intake_refused_while_order_open(
        self, lifecycle, orchestrator, session, branches, actor_a, center_tech, make_machine
    ):
        machine = make_machine("SN-9", branches.a)
        order = orchestrator.create_transfer_order(
            TransferRequest(branches.a, branches.z, "MACHINE", ("SN-9",)), actor_a
        )

        with pytest.raises(OrderStateError) as exc_info:
            lifecycle.transition(machine.id, "RECEIVED_AT_CENTER", TransitionContext(center_tech))

        assert exc_info.value.order_id == order.id
        assert exc_info.value.status == "PENDING"
        session.refresh(machine)
        assert machine.status == MachineStatus.IN_TRANSIT.value
        assert session.get(TransferOrder, order.id).status == "PENDING"

    def test_intake_allowed_without_open_order(
        self, lifecycle, branches, center_tech, make_machine
    ):
        machine = make_machine(
            "SN-9", branches.center, MachineStatus.IN_TRANSIT, origin_branch_id=branches.a
        )

        info = lifecycle.transition(
            machine.id, "RECEIVED_AT_CENTER", TransitionContext(center_tech)
        )

        assert info.status == "RECEIVED_AT_CENTER"


class TestPredicatesAndStats:

    def test_is_valid_transition(self, lifecycle):
        assert lifecycle.is_valid_transition("IN_TRANSIT", "RECEIVED_AT_CENTER")
        assert not lifecycle.is_valid_transition("RECEIVED_AT_CENTER", "IN_TRANSIT")

    def test_kanban_stats_zero_filled(self, lifecycle, branches, at_center, make_machine):
        at_center("SN-1")
        at_center("SN-2", status=MachineStatus.IN_PROGRESS)
        at_center("SN-3", status=MachineStatus.IN_PROGRESS)
        make_machine("SN-4", branches.a)

        stats = lifecycle.get_kanban_stats()

        assert stats == {
            "RECEIVED_AT_CENTER": 1,
            "UNDER_INSPECTION": 0,
            "AWAITING_APPROVAL": 0,
            "IN_PROGRESS": 2,
            "READY_FOR_RETURN": 0,
        }

    def test_kanban_stats_by_branch(self, lifecycle, branches, at_center):
        at_center("SN-1")

        assert sum(lifecycle.get_kanban_stats(branches.z).values()) == 0
        assert lifecycle.get_kanban_stats(branches.center)["RECEIVED_AT_CENTER"] == 1
