"""
TransferValidator: item, branch and permission checks.

Every test reads the registry seeded by conftest fixtures and asserts on the
full violation list, which the validator never truncates.
"""

from uuid import uuid4

import pytest

from asset_kernel.domain.dtos import TransferRequest, ViolationCode
from asset_kernel.domain.roles import Role
from asset_kernel.models.asset import MachineStatus, SimStatus
from asset_kernel.models.maintenance import MaintenanceRequestStatus
from asset_kernel.services.transfer_validator import (
    asset_family_for,
    normalize_serials,
)


def _codes(result):
    return [v.code for v in result.violations]


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


class TestHelpers:

    def test_normalize_strips_and_drops_blanks(self):
        assert normalize_serials([" A ", "", "  ", "B", "A"]) == ["A", "B", "A"]

    @pytest.mark.parametrize(
        "transfer_type,family",
        [("MACHINE", "MACHINE"), ("MAINTENANCE", "MACHINE"), ("SEND_TO_CENTER", "MACHINE"), ("SIM", "SIM")],
    )
    def test_family_for_type(self, transfer_type, family):
        assert asset_family_for(transfer_type).value == family

    def test_unknown_type(self):
        assert asset_family_for("PRINTER") is None


# ---------------------------------------------------------------------------
# Items
# ---------------------------------------------------------------------------


class TestValidateItems:

    def test_valid_machines(self, validator, branches, make_machine):
        make_machine("SN-1", branches.a)
        make_machine("SN-2", branches.a, MachineStatus.NEW)

        result = validator.validate_items_for_transfer(["SN-1", "SN-2"], "MACHINE", branches.a)

        assert result.is_valid
        assert result.warnings == ()

    def test_empty_list(self, validator, branches):
        result = validator.validate_items_for_transfer(["", "  "], "MACHINE", branches.a)
        assert _codes(result) == [ViolationCode.EMPTY_ITEMS]

    def test_invalid_type(self, validator, branches):
        result = validator.validate_items_for_transfer(["SN-1"], "PRINTER", branches.a)
        assert _codes(result) == [ViolationCode.INVALID_TRANSFER_TYPE]

    def test_unknown_serial(self, validator, branches):
        result = validator.validate_items_for_transfer(["NOPE"], "MACHINE", branches.a)

        assert _codes(result) == [ViolationCode.ASSET_NOT_FOUND]
        assert result.violations[0].serial_number == "NOPE"

    def test_wrong_branch_reports_actual_branch(self, validator, branches, make_machine):
        make_machine("SN-Z", branches.z)

        result = validator.validate_items_for_transfer(["SN-Z"], "MACHINE", branches.a)

        (violation,) = result.violations
        assert violation.code == ViolationCode.ASSET_NOT_IN_SOURCE_BRANCH
        assert violation.details["actual_branch_id"] == branches.z
        assert violation.details["expected_branch_id"] == branches.a

    @pytest.mark.parametrize(
        "status",
        [
            MachineStatus.IN_TRANSIT,
            MachineStatus.SOLD,
            MachineStatus.ASSIGNED,
            MachineStatus.UNDER_MAINTENANCE,
        ],
    )
    def test_locked_machine_statuses(self, validator, branches, make_machine, status):
        make_machine("SN-L", branches.a, status)

        result = validator.validate_items_for_transfer(["SN-L"], "MACHINE", branches.a)

        (violation,) = result.violations
        assert violation.code == ViolationCode.ASSET_STATUS_LOCKED
        assert violation.details["current_status"] == status.value

    def test_locked_sim_status(self, validator, branches, make_sim):
        make_sim("SIM-1", branches.a, SimStatus.SOLD)

        result = validator.validate_items_for_transfer(["SIM-1"], "SIM", branches.a)

        assert _codes(result) == [ViolationCode.ASSET_STATUS_LOCKED]

    def test_machine_type_does_not_see_sims(self, validator, branches, make_sim):
        make_sim("SHARED-1", branches.a)

        result = validator.validate_items_for_transfer(["SHARED-1"], "MACHINE", branches.a)

        assert _codes(result) == [ViolationCode.ASSET_NOT_FOUND]

    def test_duplicate_serial_reported_once(self, validator, branches, make_machine):
        make_machine("SN-1", branches.a)

        result = validator.validate_items_for_transfer(["SN-1", " SN-1", "SN-1"], "MACHINE", branches.a)

        (violation,) = result.violations
        assert violation.code == ViolationCode.DUPLICATE_SERIAL_IN_REQUEST
        assert violation.details["count"] == 3

    def test_all_violations_collected(self, validator, branches, make_machine):
        make_machine("OK-1", branches.a)
        make_machine("SOLD-1", branches.a, MachineStatus.SOLD)
        make_machine("ELSE-1", branches.z)

        result = validator.validate_items_for_transfer(
            ["OK-1", "SOLD-1", "ELSE-1", "GHOST-1"], "MACHINE", branches.a
        )

        by_serial = {v.serial_number: v.code for v in result.violations}
        assert by_serial == {
            "SOLD-1": ViolationCode.ASSET_STATUS_LOCKED,
            "ELSE-1": ViolationCode.ASSET_NOT_IN_SOURCE_BRANCH,
            "GHOST-1": ViolationCode.ASSET_NOT_FOUND,
        }

    def test_pending_transfer_conflict_details(
        self, validator, orchestrator, branches, actor_a, make_machine, clock
    ):
        make_machine("SN-1", branches.a)
        order = orchestrator.create_transfer_order(
            TransferRequest(branches.a, branches.z, "MACHINE", ("SN-1",)), actor_a
        )

        result = validator.validate_items_for_transfer(["SN-1"], "MACHINE", branches.a)

        conflict = next(
            v for v in result.violations if v.code == ViolationCode.ASSET_IN_PENDING_TRANSFER
        )
        assert conflict.details["order_number"] == order.order_number
        assert conflict.details["order_id"] == order.id
        assert conflict.details["from_branch_id"] == branches.a
        assert conflict.details["to_branch_id"] == branches.z
        # the frozen status is reported too
        assert result.has_code(ViolationCode.ASSET_STATUS_LOCKED)

    def test_frozen_serial_from_other_source_still_conflicts(
        self, validator, orchestrator, branches, actor_a, make_machine
    ):
        make_machine("SN-1", branches.a)
        order = orchestrator.create_transfer_order(
            TransferRequest(branches.a, branches.z, "MACHINE", ("SN-1",)), actor_a
        )

        result = validator.validate_items_for_transfer(["SN-1"], "MAINTENANCE", branches.z)

        assert set(_codes(result)) == {
            ViolationCode.ASSET_NOT_IN_SOURCE_BRANCH,
            ViolationCode.ASSET_STATUS_LOCKED,
            ViolationCode.ASSET_IN_PENDING_TRANSFER,
        }
        conflict = next(
            v for v in result.violations if v.code == ViolationCode.ASSET_IN_PENDING_TRANSFER
        )
        assert conflict.details["order_number"] == order.order_number

    def test_open_request_is_warning_only(self, validator, branches, make_machine, make_request):
        make_machine("SN-1", branches.a)
        make_request("SN-1", branches.a)

        result = validator.validate_items_for_transfer(["SN-1"], "MACHINE", branches.a)

        assert result.is_valid
        assert [w.code for w in result.warnings] == [ViolationCode.OPEN_MAINTENANCE_REQUEST]

    def test_no_warning_for_maintenance_type(self, validator, branches, make_machine, make_request):
        make_machine("SN-1", branches.a)
        make_request("SN-1", branches.a)

        result = validator.validate_items_for_transfer(["SN-1"], "MAINTENANCE", branches.a)

        assert result.warnings == ()

    def test_closed_request_is_ignored(self, validator, branches, make_machine, make_request):
        make_machine("SN-1", branches.a)
        make_request("SN-1", branches.a, MaintenanceRequestStatus.CLOSED)

        result = validator.validate_items_for_transfer(["SN-1"], "MACHINE", branches.a)

        assert result.warnings == ()


# ---------------------------------------------------------------------------
# Branches
# ---------------------------------------------------------------------------


class TestValidateBranches:

    def test_valid(self, validator, branches):
        assert validator.validate_branches(branches.a, branches.z, "MACHINE").is_valid

    def test_same_branch(self, validator, branches):
        result = validator.validate_branches(branches.a, branches.a, "MACHINE")
        assert _codes(result) == [ViolationCode.SAME_BRANCH]

    def test_missing_branch(self, validator, branches):
        result = validator.validate_branches(None, branches.z, "MACHINE")

        (violation,) = result.violations
        assert violation.code == ViolationCode.BRANCH_REQUIRED
        assert violation.details["missing"] == ["from_branch_id"]

    def test_unknown_and_inactive(self, validator, branches):
        result = validator.validate_branches(uuid4(), branches.closed, "MACHINE")

        assert _codes(result) == [ViolationCode.BRANCH_NOT_FOUND, ViolationCode.BRANCH_INACTIVE]
        assert [v.details["role"] for v in result.violations] == ["source", "destination"]

    @pytest.mark.parametrize("transfer_type", ["MAINTENANCE", "SEND_TO_CENTER"])
    def test_maintenance_needs_center(self, validator, branches, transfer_type):
        result = validator.validate_branches(branches.a, branches.z, transfer_type)
        assert _codes(result) == [ViolationCode.DESTINATION_NOT_MAINTENANCE_CENTER]

    def test_maintenance_to_center_ok(self, validator, branches):
        assert validator.validate_branches(branches.a, branches.center, "MAINTENANCE").is_valid


# ---------------------------------------------------------------------------
# Permission
# ---------------------------------------------------------------------------


class TestValidatePermission:

    def test_home_branch(self, validator, branches, actor_a):
        assert validator.validate_user_permission(actor_a, branches.a).is_valid

    def test_descendant_branch(self, validator, branches, actor_a):
        assert validator.validate_user_permission(actor_a, branches.a1).is_valid

    def test_parent_branch_denied(self, validator, branches, actor_a1):
        result = validator.validate_user_permission(actor_a1, branches.a)
        assert _codes(result) == [ViolationCode.BRANCH_NOT_AUTHORIZED]

    def test_sibling_tree_denied(self, validator, branches, actor_a):
        result = validator.validate_user_permission(actor_a, branches.z)
        assert _codes(result) == [ViolationCode.BRANCH_NOT_AUTHORIZED]

    def test_global_role(self, validator, branches, admin, make_actor):
        assert validator.validate_user_permission(admin, branches.z).is_valid
        affairs = make_actor(Role.ADMIN_AFFAIRS, branches.hq)
        assert validator.validate_user_permission(affairs, branches.center).is_valid


# ---------------------------------------------------------------------------
# Full request
# ---------------------------------------------------------------------------


class TestValidateTransferOrder:

    def test_header_failure_skips_items(self, validator, branches, actor_a, captured_logs):
        request = TransferRequest(branches.z, branches.a, "MACHINE", ("GHOST",))

        result = validator.validate_transfer_order(request, actor_a)

        assert _codes(result) == [ViolationCode.BRANCH_NOT_AUTHORIZED]
        failed = [r for r in captured_logs() if r["message"] == "transfer_validation_failed"]
        assert failed[0]["stage"] == "header"

    def test_invalid_type_in_header(self, validator, branches, actor_a):
        request = TransferRequest(branches.a, branches.z, "PRINTER", ("SN-1",))
        result = validator.validate_transfer_order(request, actor_a)
        assert _codes(result) == [ViolationCode.INVALID_TRANSFER_TYPE]

    def test_items_checked_after_header(self, validator, branches, actor_a):
        request = TransferRequest(branches.a, branches.z, "MACHINE", ("GHOST",))
        result = validator.validate_transfer_order(request, actor_a)
        assert _codes(result) == [ViolationCode.ASSET_NOT_FOUND]

    def test_validation_never_writes(self, validator, session, branches, actor_a, make_machine):
        machine = make_machine("SN-1", branches.a)

        validator.validate_transfer_order(
            TransferRequest(branches.a, branches.z, "MACHINE", ("SN-1",)), actor_a
        )

        assert not session.new
        assert not session.dirty
        session.refresh(machine)
        assert machine.status == MachineStatus.STANDBY.value
