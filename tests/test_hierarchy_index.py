"""Tests for the role hierarchy index."""

import pytest

from neo_permissions.core.exceptions import CyclicHierarchyError
from neo_permissions.domain.entities.role import Role
from neo_permissions.application.services.hierarchy_index import (
    RoleHierarchyIndex,
    ancestors_of,
    build_index,
    is_ancestor,
)


class TestAncestry:
    """Ancestor and descendant queries."""

    def test_transitive_ancestors(self, org_index):
        assert org_index.ancestors_of("staff") == frozenset({"manager", "director", "admin"})
        assert org_index.ancestors_of("admin") == frozenset()

    def test_is_ancestor_is_directional(self, org_index):
        assert org_index.is_ancestor("staff", "admin")
        assert org_index.is_ancestor("staff", "manager")
        assert not org_index.is_ancestor("admin", "staff")
        assert not org_index.is_ancestor("staff", "auditor")
        assert not org_index.is_ancestor("staff", "staff")

    def test_descendants(self, org_index):
        assert org_index.descendants_of("director") == frozenset({"manager", "staff"})
        assert org_index.descendants_of("admin") == frozenset({"director", "manager", "staff", "auditor"})

    def test_unknown_role_has_no_ancestors(self, org_index):
        assert org_index.ancestors_of("ghost") == frozenset()
        assert org_index.effective_level("ghost") is None

    def test_module_level_contract(self, org_roles):
        index = build_index(org_roles)
        assert is_ancestor(index, "manager", "director")
        assert ancestors_of(index, "manager") == frozenset({"director", "admin"})

    def test_multiple_parent_paths(self):
        roles = [
            Role(id="top", code="top", hierarchy_level=0),
            Role(id="left", code="left", hierarchy_level=2, parent_ids=frozenset({"top"})),
            Role(id="right", code="right", hierarchy_level=1),
            Role(id="leaf", code="leaf", hierarchy_level=5, parent_ids=frozenset({"left", "right"})),
        ]
        index = RoleHierarchyIndex.build(roles)

        assert index.ancestors_of("leaf") == frozenset({"left", "right", "top"})
        assert index.depth_of("leaf") == 2
        assert index.depth_of("top") == 0


class TestEffectiveLevel:
    """Effective level is the most privileged level reachable upward."""

    def test_inherits_most_privileged_ancestor_level(self, org_index):
        assert org_index.effective_level("staff") == 0
        assert org_index.effective_level("admin") == 0

    def test_own_level_when_more_privileged_than_parents(self):
        roles = [
            Role(id="p", code="p", hierarchy_level=4),
            Role(id="c", code="c", hierarchy_level=1, parent_ids=frozenset({"p"})),
        ]
        index = RoleHierarchyIndex.build(roles)
        assert index.effective_level("c") == 1
        assert index.effective_level("p") == 4


class TestRolesGranting:
    """Grants flow from subordinate roles up to the roles above them."""

    def test_held_role_collects_descendants(self, org_index):
        assert org_index.roles_granting(["director"]) == frozenset({"director", "manager", "staff"})

    def test_held_role_does_not_collect_parents(self, org_index):
        assert org_index.roles_granting(["staff"]) == frozenset({"staff"})

    def test_unknown_held_role_grants_nothing(self, org_index):
        assert org_index.roles_granting(["ghost"]) == frozenset()
        assert org_index.roles_granting(["ghost", "manager"]) == frozenset({"manager", "staff"})

    def test_inactive_held_role_grants_nothing(self, org_roles):
        roles = org_roles + [Role(id="legacy", code="legacy", hierarchy_level=2, is_active=False)]
        index = RoleHierarchyIndex.build(roles)

        assert index.roles_granting(["legacy"]) == frozenset()


class TestNonInheritingLinks:
    """Parent links flagged as non-inheriting keep the shape but carry no grants."""

    @pytest.fixture
    def index(self):
        roles = [
            Role(id="admin", code="admin", hierarchy_level=0),
            Role(id="director", code="director", hierarchy_level=1, parent_ids=frozenset({"admin"})),
            Role(
                id="contractor", code="contractor", hierarchy_level=3,
                parent_ids=frozenset({"director"}),
                non_inheriting_parent_ids=frozenset({"director"})
            ),
            Role(id="intern", code="intern", hierarchy_level=4, parent_ids=frozenset({"contractor"})),
        ]
        return RoleHierarchyIndex.build(roles)

    def test_structure_unchanged(self, index):
        assert index.is_ancestor("contractor", "director")
        assert index.descendants_of("director") == frozenset({"contractor", "intern"})

    def test_grants_stop_at_non_inheriting_link(self, index):
        assert index.roles_granting(["director"]) == frozenset({"director"})
        assert index.roles_granting(["admin"]) == frozenset({"admin", "director"})
        assert index.roles_granting(["contractor"]) == frozenset({"contractor", "intern"})

    def test_with_edge_without_inheritance(self, org_index):
        updated = org_index.with_edge("auditor", "director", inherit=False)

        assert updated.is_ancestor("auditor", "director")
        assert "auditor" not in updated.roles_granting(["director"])
        assert "auditor" in updated.roles_granting(["admin"])

    def test_without_edge_clears_flag(self, index):
        updated = index.without_edge("contractor", "director")
        assert updated.get_role("contractor").non_inheriting_parent_ids == frozenset()


class TestBuild:
    """Index construction and validation."""

    def test_cycle_is_fatal(self):
        roles = [
            Role(id="a", code="a", parent_ids=frozenset({"c"})),
            Role(id="b", code="b", parent_ids=frozenset({"a"})),
            Role(id="c", code="c", parent_ids=frozenset({"b"})),
        ]
        with pytest.raises(CyclicHierarchyError) as exc_info:
            RoleHierarchyIndex.build(roles)

        cycle = exc_info.value.cycle
        assert cycle[0] == cycle[-1]
        assert set(cycle) == {"a", "b", "c"}
        assert exc_info.value.error_code == "CYCLIC_HIERARCHY"

    def test_self_parent_is_a_cycle(self):
        with pytest.raises(CyclicHierarchyError):
            RoleHierarchyIndex.build([Role(id="a", code="a", parent_ids=frozenset({"a"}))])

    def test_unknown_parent_ignored(self):
        index = RoleHierarchyIndex.build([Role(id="a", code="a", parent_ids=frozenset({"missing"}))])
        assert index.parents_of("a") == frozenset()
        assert "a" in index

    def test_inactive_roles_left_out(self):
        roles = [
            Role(id="old", code="old", is_active=False),
            Role(id="a", code="a", parent_ids=frozenset({"old"})),
        ]
        index = RoleHierarchyIndex.build(roles)
        assert "old" not in index
        assert index.ancestors_of("a") == frozenset()

    def test_diamond_is_not_a_cycle(self):
        roles = [
            Role(id="top", code="top"),
            Role(id="l", code="l", parent_ids=frozenset({"top"})),
            Role(id="r", code="r", parent_ids=frozenset({"top"})),
            Role(id="bottom", code="bottom", parent_ids=frozenset({"l", "r"})),
        ]
        index = RoleHierarchyIndex.build(roles)
        assert index.descendants_of("top") == frozenset({"l", "r", "bottom"})


class TestEdgeInsertion:
    """Edges are added by producing a new index."""

    def test_with_edge_returns_new_index(self, org_index):
        updated = org_index.with_edge("auditor", "director")

        assert updated is not org_index
        assert updated.is_ancestor("auditor", "director")
        assert not org_index.is_ancestor("auditor", "director")
        assert updated.get_role("auditor").parent_ids == frozenset({"admin", "director"})

    def test_edge_creating_cycle_rejected(self, org_index):
        with pytest.raises(CyclicHierarchyError):
            org_index.with_edge("manager", "staff")
        assert org_index.would_create_cycle("admin", "staff")

    def test_self_edge_rejected(self, org_index):
        with pytest.raises(CyclicHierarchyError):
            org_index.with_edge("staff", "staff")

    def test_unknown_role_rejected(self, org_index):
        with pytest.raises(KeyError):
            org_index.with_edge("staff", "ghost")

    def test_without_edge(self, org_index):
        updated = org_index.without_edge("staff", "manager")
        assert updated.ancestors_of("staff") == frozenset()
        assert org_index.ancestors_of("staff") == frozenset({"manager", "director", "admin"})


def test_tree_view(org_index):
    tree = org_index.tree("director")
    assert tree["code"] == "director"
    assert [child["code"] for child in tree["children"]] == ["manager"]
    assert tree["children"][0]["children"][0]["code"] == "staff"
