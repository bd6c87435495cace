from types import SimpleNamespace

import pytest

from permitted.core.exceptions import MissingCapabilityError
from permitted.core.refs import PermissionRef, RoleRef


@pytest.fixture
def blog(make_permitted, make_user):
    """Editor can edit and publish posts; Writer can draft them."""
    permitted = make_permitted()
    permitted.permissions.create_many(["edit posts", "delete posts", "publish posts", "draft posts"])
    permitted.roles.give_permission_to(permitted.create_role("Editor"), ["edit posts", "publish posts"])
    permitted.roles.give_permission_to(permitted.create_role("Writer"), "draft posts")
    user = make_user(email="editor@example.com")
    permitted.assign_role_to_user(user, "Editor")
    return permitted, user


def test_role_and_permission_checks(blog):
    permitted, user = blog
    auth = permitted.authorizer

    assert auth.has_role(user, "Editor")
    assert not auth.has_role(user, "Writer")
    assert auth.has_permission(user, "edit posts")
    assert auth.can(user, "publish posts")
    assert not auth.has_permission(user, "delete posts")
    assert auth.has_any_permission(user, ["delete posts", "publish posts"])
    assert not auth.has_all_permissions(user, ["delete posts", "publish posts"])
    assert auth.get_role_names(user) == ["Editor"]
    assert auth.get_permission_names(user) == ["edit posts", "publish posts"]
    assert auth.get_permissions_by_role(user) == {"Editor": ["edit posts", "publish posts"]}


def test_unknown_permission_is_denied(blog):
    permitted, user = blog
    assert not permitted.authorizer.has_permission(user, "launch rockets")


def test_has_role_with_list_means_any(blog):
    permitted, user = blog
    assert permitted.authorizer.has_role(user, ["Writer", "Editor"])
    assert not permitted.authorizer.has_role(user, ["Writer", "Admin"])


def test_empty_lists(blog):
    permitted, user = blog
    auth = permitted.authorizer
    assert not auth.has_any_permission(user, [])
    assert auth.has_all_permissions(user, [])
    assert not auth.has_any_role(user, [])
    assert auth.has_all_roles(user, [])


def test_missing_principal_is_denied(blog):
    permitted, _ = blog
    auth = permitted.authorizer
    assert not auth.has_permission(None, "edit posts")
    assert not auth.has_role(None, "Editor")
    assert not auth.has_all_permissions(None, [])
    assert not auth.has_module_access(None, "Blog")
    assert not auth.is_super_admin(None)


def test_object_without_id_is_rejected(blog):
    permitted, _ = blog
    with pytest.raises(MissingCapabilityError):
        permitted.authorizer.has_permission(object(), "edit posts")
    with pytest.raises(MissingCapabilityError):
        permitted.authorizer.has_role(SimpleNamespace(id=None), "Editor")


def test_any_object_with_id_can_be_a_principal(blog):
    permitted, user = blog
    stranger = SimpleNamespace(id="not-a-user")
    assert not permitted.authorizer.has_permission(stranger, "edit posts")
    assert permitted.authorizer.has_permission(SimpleNamespace(id=user.id), "edit posts")


def test_references_by_id(blog):
    permitted, user = blog
    auth = permitted.authorizer
    editor = permitted.find_role("Editor")
    edit = permitted.find_permission("edit posts")

    assert auth.has_role(user, RoleRef.by_id(editor.id))
    assert auth.has_role(user, editor)
    assert auth.has_permission(user, PermissionRef.by_id(edit.id))
    assert auth.has_permission(user, edit)
    # A bare string is always a name
    assert not auth.has_role(user, editor.id)
    assert not auth.has_permission(user, PermissionRef.by_id("missing"))


def test_has_permission_via_role(blog):
    permitted, user = blog
    auth = permitted.authorizer
    assert auth.has_permission_via_role(user, "edit posts", "Editor")
    assert not auth.has_permission_via_role(user, "draft posts", "Writer")
    assert not auth.has_permission_via_role(user, "delete posts", "Editor")
    assert not auth.has_permission_via_role(user, "edit posts", "Ghost")


def test_has_role_or_permission(blog):
    permitted, user = blog
    auth = permitted.authorizer
    assert auth.has_role_or_permission(user, "Editor")
    assert auth.has_role_or_permission(user, "edit posts")
    assert not auth.has_role_or_permission(user, "Writer")


def test_super_admin_role_bypasses_checks(make_permitted, make_user):
    permitted = make_permitted()
    permitted.create_role("super admin")
    root = make_user()
    permitted.assign_role_to_user(root, "super admin")

    auth = permitted.authorizer
    assert auth.is_super_admin(root)
    assert auth.has_permission(root, "anything at all")
    assert auth.has_all_permissions(root, ["a", "b"])


def test_super_admin_disabled(make_permitted, make_user):
    permitted = make_permitted(super_admin_enabled=False)
    permitted.create_role("super admin")
    root = make_user()
    permitted.assign_role_to_user(root, "super admin")

    assert not permitted.authorizer.is_super_admin(root)
    assert not permitted.authorizer.has_permission(root, "anything at all")


def test_super_admin_callback(make_permitted, make_user):
    permitted = make_permitted(super_admin_callback=lambda user: user.email == "root@example.com")
    root = make_user(email="root@example.com")
    other = make_user(email="someone@example.com")

    assert permitted.authorizer.has_permission(root, "edit posts")
    assert not permitted.authorizer.has_permission(other, "edit posts")


def test_super_admin_gate(make_permitted, make_user, gate_registry):
    gate_registry.define("platform-owner", lambda user: user.email.endswith("@owner.example"))
    permitted = make_permitted(super_admin_gate="platform-owner")
    owner = make_user(email="ops@owner.example")
    other = make_user(email="ops@customer.example")

    assert permitted.authorizer.is_super_admin(owner)
    assert not permitted.authorizer.is_super_admin(other)


def test_undefined_gate_denies(make_permitted, make_user):
    permitted = make_permitted(super_admin_gate="never-defined")
    assert not permitted.authorizer.is_super_admin(make_user())


def test_wildcard_permissions(make_permitted, make_user):
    permitted = make_permitted(wildcards_enabled=True)
    permitted.create_permission("users.*")
    permitted.roles.give_permission_to(permitted.create_role("User Admin"), "users.*")
    user = make_user()
    permitted.assign_role_to_user(user, "User Admin")

    auth = permitted.authorizer
    assert auth.has_permission(user, "users.create")
    assert auth.has_permission(user, "users.posts.edit")
    assert not auth.has_permission(user, "usersx.create")
    # Wildcards never apply to role-scoped checks
    assert not auth.has_permission_via_role(user, "users.create", "User Admin")


def test_wildcards_off_by_default(make_permitted, make_user):
    permitted = make_permitted()
    permitted.create_permission("users.*")
    permitted.roles.give_permission_to(permitted.create_role("User Admin"), "users.*")
    user = make_user()
    permitted.assign_role_to_user(user, "User Admin")
    assert not permitted.authorizer.has_permission(user, "users.create")


@pytest.mark.parametrize("order", [["Editor", "Reviewer"], ["Reviewer", "Editor"]])
def test_permissions_are_the_union_of_all_roles(blog, make_user, order):
    permitted, _ = blog
    permitted.roles.give_permission_to(permitted.create_role("Reviewer"), ["publish posts", "delete posts"])
    user = make_user(email="reviewer@example.com")
    for role in order:
        permitted.assign_role_to_user(user, role)

    auth = permitted.authorizer
    assert auth.get_permission_names(user) == ["delete posts", "edit posts", "publish posts"]
    assert auth.has_all_permissions(user, ["edit posts", "publish posts", "delete posts"])
    assert not auth.has_permission(user, "draft posts")

    permitted.users.remove_role(user, "Editor")
    assert auth.get_permission_names(user) == ["delete posts", "publish posts"]
