"""
Unit tests for MaskManager.

Tests:
- Selection restriction and preview
- Form creation (leaves, groups, module groups)
- Add existing, delete, reorder
- Operator, inverse, opacity and rename edits
"""

import pytest

from models.editing_module import EditingModule
from models.errors import CycleRejectedError, DuplicateMembershipError, MaskError
from models.mask_form import FormKind, MoveDirection, OperatorKind


def selected_paths(manager):
    return [n.path for n in manager.selection]


class TestSelection:
    """Tests for selecting rows."""

    def test_initial_rows(self, manager):
        assert len(manager.nodes) == 11
        assert manager.selection == []
        assert manager.preview_form is None

    def test_select_top_level_rows(self, manager):
        """Test any top-level rows can be selected together."""
        manager.select([(0,), (2,)])
        assert selected_paths(manager) == [(0,), (2,)]

    def test_select_prunes_to_last_row(self, manager):
        """Test an incoherent request keeps the rows matching the last one."""
        manager.select([(0,), (1, 1), (1, 0)])
        assert selected_paths(manager) == [(1, 0), (1, 1)]

    def test_select_unknown_path(self, manager):
        manager.select([(42,), (1,)])
        assert selected_paths(manager) == [(1,)]

    def test_extend_with_sibling(self, manager):
        manager.select([(1, 1)])
        manager.extend_selection((1, 0))
        assert selected_paths(manager) == [(1, 0), (1, 1)]

    def test_extend_with_cousin(self, manager):
        """Test the newly clicked row wins over rows under another parent."""
        manager.select([(1, 1)])
        manager.extend_selection((0, 1))
        assert selected_paths(manager) == [(0, 1)]

    def test_deselect(self, manager):
        manager.select([(2,), (3,)])
        manager.deselect((2,))
        assert selected_paths(manager) == [(3,)]

    def test_clear(self, manager):
        manager.select([(2,)])
        manager.clear_selection()
        assert manager.selection == []
        assert manager.preview_form is None

    def test_select_form(self, manager):
        """Test picking a form selects its top-level row."""
        node = manager.select_form(3)
        assert node.path == (4,)
        assert selected_paths(manager) == [(4,)]

    def test_select_form_missing(self, manager):
        assert manager.select_form(99) is None

    def test_preview_follows_display_order(self, manager):
        """Test the preview keeps sibling order and states."""
        manager.select([(0, 1), (0, 0)])
        preview = manager.preview_form
        assert preview.member_ids() == [1, 2]
        assert preview.members[0].operator is None
        assert preview.members[1].operator == OperatorKind.DIFFERENCE

    def test_edit_module_announced(self, manager, modules):
        """Test selecting one module group announces its module."""
        announced = []
        manager.editModuleChanged.connect(announced.append)
        manager.select([(1,)])
        manager.select([(0,)])
        manager.select([(1,), (0,)])
        assert announced == [modules.get("exposure"), None, None]


class TestCreate:
    """Tests for creating forms."""

    def test_create_leaf(self, manager):
        circle = manager.create_leaf(FormKind.CIRCLE)
        assert circle.id == 7
        assert circle.name == "circle #7"
        assert manager.nodes[-1].form_id == 7

    def test_create_leaf_for_new_module(self, manager, modules):
        """Test the module's group is created on first use."""
        tone = modules.get("tone")
        curve = manager.create_leaf(FormKind.CURVE, owner_module=tone)
        group = manager.registry.get(tone.blend_mask_group_id)
        assert group.name == "grp tone"
        member = group.get_member(curve.id)
        assert member.operator is None
        assert member.state.use and member.state.show

    def test_create_leaf_for_existing_module(self, manager, modules):
        """Test later shapes join the module's group with UNION."""
        circle = manager.create_leaf(FormKind.CIRCLE, owner_module=modules.get("exposure"))
        outer = manager.registry.get(6)
        assert outer.member_ids() == [5, 3, circle.id]
        assert outer.get_member(circle.id).operator == OperatorKind.UNION

    def test_create_clone_for_module(self, manager, modules):
        """Test clones are created but never join the module's group."""
        clone = manager.create_leaf(FormKind.CLONE, owner_module=modules.get("exposure"))
        assert clone.id in manager.registry
        assert manager.registry.get(6).member_ids() == [5, 3]

    def test_create_leaf_rejects_group(self, manager):
        with pytest.raises(ValueError):
            manager.create_leaf(FormKind.GROUP)

    def test_group_from_selection(self, manager):
        """Test the first selected row seeds the group, the others union."""
        manager.select([(2,), (4,)])
        group = manager.create_group_from_selection()
        assert group.name == "group #7"
        assert group.member_ids() == [1, 3]
        assert group.members[0].operator is None
        assert group.members[1].operator == OperatorKind.UNION
        assert manager.selection == []

    def test_group_from_nested_selection(self, manager):
        """Test nested rows are not grouped."""
        manager.select([(0, 0)])
        assert manager.create_group_from_selection() is None
        assert len(manager.registry) == 6

    def test_group_from_empty_selection(self, manager):
        assert manager.create_group_from_selection() is None


class TestAddExisting:
    """Tests for adding existing forms to a module."""

    def test_add(self, manager, modules):
        membership = manager.add_existing(1, modules.get("exposure"))
        assert membership.operator == OperatorKind.UNION
        assert membership.state.show is True
        assert manager.registry.get(6).member_ids() == [5, 3, 1]

    def test_add_to_new_module_group(self, manager, modules):
        tone = modules.get("tone")
        membership = manager.add_existing(3, tone)
        assert membership.operator is None
        assert manager.registry.get(tone.blend_mask_group_id).member_ids() == [3]

    def test_duplicate(self, manager, modules):
        """Test adding a form twice is reported and changes nothing."""
        with pytest.raises(DuplicateMembershipError):
            manager.add_existing(3, modules.get("exposure"))
        assert manager.registry.get(6).member_ids() == [5, 3]

    def test_cycle(self, manager):
        """Test adding an ancestor group is rejected."""
        module = EditingModule("inner owner", blend_mask_group_id=5)
        manager.modules.add(module)
        with pytest.raises(CycleRejectedError):
            manager.add_existing(6, module)
        assert manager.registry.get(5).member_ids() == [1, 2]

    def test_clone(self, manager, modules):
        with pytest.raises(MaskError):
            manager.add_existing(4, modules.get("exposure"))

    def test_missing_form(self, manager, modules):
        assert manager.add_existing(99, modules.get("exposure")) is None

    def test_choices(self, manager, modules):
        choices = [c.form_id for c in manager.existing_form_choices(modules.get("exposure"))]
        assert choices == [1, 2]


class TestDelete:
    """Tests for delete_selected."""

    def test_delete_top_level_form(self, manager):
        """Test deleting a top-level row removes the form everywhere."""
        manager.select([(2,)])
        assert manager.delete_selected() == 1
        assert 1 not in manager.registry
        assert manager.membership.find(5, 1) is None
        assert 1 not in [n.form_id for n in manager.nodes]

    def test_delete_nested_row(self, manager):
        """Test deleting a nested row only removes the membership."""
        manager.select([(1, 1)])
        manager.delete_selected()
        assert manager.registry.get(6).member_ids() == [5]
        assert 3 in manager.registry

    def test_delete_group_keeps_members(self, manager):
        manager.select([(0,)])
        manager.delete_selected()
        assert 5 not in manager.registry
        assert manager.registry.get(6).member_ids() == [3]
        assert 1 in manager.registry

    def test_delete_nothing(self, manager):
        assert manager.delete_selected() == 0


class TestReorder:
    """Tests for reorder_selected."""

    def test_move_up_keeps_selection(self, manager):
        """Test the moved row stays selected at its new path."""
        manager.select([(1, 1)])
        assert manager.reorder_selected(MoveDirection.UP) is True
        assert manager.registry.get(6).member_ids() == [3, 5]
        assert selected_paths(manager) == [(1, 0)]
        assert manager.selection[0].form_id == 3

    def test_block_at_edge(self, manager):
        """Test a block touching the group's end does not move."""
        manager.select([(0, 0), (0, 1)])
        assert manager.reorder_selected(MoveDirection.DOWN) is False
        assert manager.registry.get(5).member_ids() == [1, 2]

    def test_block_moves_together(self, manager):
        manager.membership.append(5, 3)
        manager.rebuild()
        manager.select([(0, 0), (0, 1)])
        assert manager.reorder_selected(MoveDirection.DOWN) is True
        assert manager.registry.get(5).member_ids() == [3, 1, 2]

    def test_top_level_ignored(self, manager):
        manager.select([(2,)])
        assert manager.reorder_selected(MoveDirection.UP) is False


class TestCompositionEdits:
    """Tests for operator, inverse and opacity edits."""

    def test_set_operator(self, manager):
        manager.select([(0, 1)])
        assert manager.set_operator(OperatorKind.EXCLUSION) is True
        assert manager.membership.find(5, 2).operator == OperatorKind.EXCLUSION
        assert manager.node_at((0, 1)).operator == OperatorKind.EXCLUSION

    def test_set_same_operator(self, manager):
        manager.select([(0, 1)])
        assert manager.set_operator(OperatorKind.DIFFERENCE) is False

    def test_set_operator_on_siblings(self, manager):
        manager.select([(0, 0), (0, 1)])
        manager.set_operator(OperatorKind.INTERSECTION)
        group = manager.registry.get(5)
        assert [m.operator for m in group.members] == [OperatorKind.INTERSECTION] * 2

    def test_top_level_has_no_operator(self, manager):
        manager.select([(2,)])
        assert manager.set_operator(OperatorKind.UNION) is False

    def test_toggle_inverse(self, manager):
        manager.select([(1, 1)])
        assert manager.toggle_inverse() is True
        assert manager.membership.find(6, 3).inverse is False
        assert manager.node_at((1, 1)).inverse is False

    def test_set_opacity(self, manager):
        manager.select([(0, 1)])
        assert manager.set_opacity(0.25) is True
        assert manager.node_at((0, 1)).label == "B 25%"
        assert manager.node_at((1, 0, 1)).label == "B 25%"


class TestRename:
    """Tests for rename and label refresh."""

    def test_rename(self, manager):
        assert manager.rename(1, "disc") is True
        assert [n.label for n in manager.nodes if n.form_id == 1] == ["disc"] * 3

    def test_rename_unchanged(self, manager):
        assert manager.rename(1, "A") is False

    def test_rename_missing(self, manager):
        assert manager.rename(99, "x") is False

    def test_rename_truncates(self, manager, settings):
        settings.settings.naming.max_name_length = 4
        manager.rename(1, "long name")
        assert manager.registry.get(1).name == "long"

    def test_refresh_labels(self, manager):
        """Test labels follow a rename done outside the manager."""
        updated = []
        manager.labelsUpdated.connect(lambda: updated.append(True))
        manager.registry.get(3).name = "D"
        assert manager.refresh_labels() == 2
        assert manager.node_at((1, 1)).label == "D 50%"
        assert updated == [True]


class TestSession:
    """Tests for the session lifecycle."""

    def test_close(self, manager):
        manager.select([(1,)])
        manager.close_session()
        assert len(manager.registry) == 0
        assert manager.nodes == []
        assert manager.selection == []

    def test_open_missing_file(self, manager, temp_dir):
        assert manager.open_session(temp_dir / "missing.json") is False
        assert len(manager.nodes) == 11
