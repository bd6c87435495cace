import pytest

from permitted.core.exceptions import (
    FeatureDisabled,
    InvalidSubModule,
    ModuleDoesNotExist,
    PermissionModuleRequired,
)

MODULE_FLAGS = dict(modules_enabled=True, sub_modules_enabled=True)


@pytest.fixture
def school(make_permitted, make_user):
    """Academic -> Subjects, with an Instructor role that can view subjects."""
    permitted = make_permitted(**MODULE_FLAGS)
    academic = permitted.create_module("Academic", display_name="Academic", order=1)
    subjects = permitted.modules.create_sub_module(academic, "Subjects")
    permitted.create_module("Finance", order=2)

    permitted.create_permission("view subjects", module=academic, sub_module=subjects)
    permitted.create_permission("view timetable", module=academic)
    permitted.create_permission("view invoices")

    permitted.roles.give_permission_to(permitted.create_role("Instructor"), "view subjects")
    instructor = make_user(email="instructor@school.example")
    permitted.assign_role_to_user(instructor, "Instructor")
    return permitted, instructor


def test_module_access_through_sub_module_permission(school):
    permitted, instructor = school
    auth = permitted.authorizer
    assert auth.has_module_access(instructor, "Academic")
    assert not auth.has_module_access(instructor, "Finance")
    assert not auth.has_module_access(instructor, "Library")


def test_module_access_denied_without_permissions(school, make_user):
    permitted, _ = school
    assert not permitted.authorizer.has_module_access(make_user(), "Academic")


def test_super_admin_has_every_module(school, make_user):
    permitted, _ = school
    permitted.create_role("super admin")
    root = make_user()
    permitted.assign_role_to_user(root, "super admin")
    assert permitted.authorizer.has_module_access(root, "Finance")


def test_modules_disabled_grants_access(make_permitted, make_user):
    permitted = make_permitted()
    assert permitted.authorizer.has_module_access(make_user(), "Anything")


def test_all_permissions_include_sub_modules(school):
    permitted, _ = school
    names = [p.name for p in permitted.modules.get_all_permissions("Academic")]
    assert names == ["view subjects", "view timetable"]


def test_modules_listed_in_order(school):
    permitted, _ = school
    assert [m.name for m in permitted.modules.all_modules()] == ["Academic", "Finance"]


def test_deleting_module_unlinks_permissions(school):
    permitted, instructor = school
    permitted.modules.delete_module("Academic")

    assert permitted.modules.find_module("Academic") is None
    subject_permission = permitted.find_permission("view subjects")
    assert subject_permission.module_id is None
    assert subject_permission.sub_module_id is None
    # Role grants survive the module
    assert permitted.authorizer.has_permission(instructor, "view subjects")


def test_sub_module_must_belong_to_module(school):
    permitted, _ = school
    finance = permitted.modules.find_module("Finance")
    subjects = permitted.modules.find_sub_module("Academic", "Subjects")
    with pytest.raises(InvalidSubModule):
        permitted.create_permission("view grades", module=finance, sub_module=subjects)


def test_sub_module_alone_implies_its_module(school):
    permitted, _ = school
    subjects = permitted.modules.find_sub_module("Academic", "Subjects")
    permission = permitted.create_permission("edit subjects", sub_module=subjects)
    assert permission.module_id == subjects.module_id


def test_attach_permission(school):
    permitted, _ = school
    permission = permitted.modules.attach_permission("view invoices", "Finance")
    finance = permitted.modules.find_module("Finance")
    assert permission.module_id == finance.id
    assert permission.sub_module_id is None

    permission = permitted.modules.attach_permission("view invoices", "Academic", "Subjects")
    assert permission.sub_module_id == permitted.modules.find_sub_module("Academic", "Subjects").id


def test_unknown_module_raises(school):
    permitted, _ = school
    with pytest.raises(ModuleDoesNotExist):
        permitted.modules.attach_permission("view invoices", "Library")


def test_module_required(make_permitted):
    permitted = make_permitted(modules_enabled=True, require_module=True)
    with pytest.raises(PermissionModuleRequired):
        permitted.create_permission("orphan")


def test_disabled_features_raise(make_permitted):
    with pytest.raises(FeatureDisabled):
        make_permitted().create_module("Academic")

    permitted = make_permitted(modules_enabled=True)
    academic = permitted.create_module("Academic")
    with pytest.raises(FeatureDisabled):
        permitted.modules.create_sub_module(academic, "Subjects")
