"""
Tests for VendorService: codes, qualification lifecycle and permissions.
"""

import pytest

from procurement_kernel.exceptions import ForbiddenError, InvalidStateError, ValidationError
from procurement_modules.vendor import VendorInput, VendorStatus


@pytest.fixture
def pending_vendor(vendor_service, admin_actor):
    return vendor_service.create_vendor(admin_actor, VendorInput(name="Globex", category="IT"))


class TestCreateVendor:
    def test_new_vendor_is_pending_with_code(self, pending_vendor, admin_actor):
        assert pending_vendor.vendor_code == "VND-2024-0001"
        assert pending_vendor.status == VendorStatus.PENDING.value
        assert pending_vendor.created_by_id == admin_actor.user_id

    def test_blank_name_rejected(self):
        with pytest.raises(ValidationError):
            VendorInput(name="   ")

    def test_employee_cannot_create(self, vendor_service, employee_actor):
        with pytest.raises(ForbiddenError):
            vendor_service.create_vendor(employee_actor, VendorInput(name="Initech"))

    def test_officer_can_create(self, vendor_service, officer_actor):
        created = vendor_service.create_vendor(officer_actor, VendorInput(name="Initech"))
        assert created.name == "Initech"


class TestLifecycle:
    def test_approve_suspend_reactivate(self, vendor_service, pending_vendor, admin_actor):
        assert vendor_service.approve_vendor(admin_actor, pending_vendor.id).status == "APPROVED"
        assert vendor_service.suspend_vendor(admin_actor, pending_vendor.id).status == "SUSPENDED"
        assert vendor_service.reactivate_vendor(admin_actor, pending_vendor.id).status == "APPROVED"

    def test_cannot_suspend_pending(self, vendor_service, pending_vendor, admin_actor):
        with pytest.raises(InvalidStateError):
            vendor_service.suspend_vendor(admin_actor, pending_vendor.id)

    def test_blacklist_is_terminal(self, vendor_service, pending_vendor, admin_actor):
        vendor_service.blacklist_vendor(admin_actor, pending_vendor.id)
        with pytest.raises(InvalidStateError):
            vendor_service.approve_vendor(admin_actor, pending_vendor.id)
        with pytest.raises(InvalidStateError):
            vendor_service.update_vendor(admin_actor, pending_vendor.id, VendorInput(name="Globex 2"))


class TestQueries:
    def test_update_and_filter_by_status(self, vendor_service, pending_vendor, vendor, admin_actor):
        updated = vendor_service.update_vendor(
            admin_actor, pending_vendor.id, VendorInput(name="Globex Corp", email="ap@globex.example")
        )
        assert updated.email == "ap@globex.example"

        assert [v.id for v in vendor_service.list_vendors(VendorStatus.APPROVED)] == [vendor.id]
        assert {v.id for v in vendor_service.list_vendors()} == {vendor.id, pending_vendor.id}
