"""
Unit tests for PreviewBuilder.

Tests:
- Preview of top-level and nested selections
- Inlining of selected groups
- Clones and vanished forms
"""

import pytest

from models.mask_form import FormKind, OperatorKind
from services.preview_builder import PREVIEW_FORM_ID, PreviewBuilder


@pytest.fixture
def builder(populated_registry):
    return PreviewBuilder(populated_registry)


class TestBuild:
    """Tests for PreviewBuilder.build."""

    def test_empty_selection(self, builder):
        assert builder.build([]) is None

    def test_transient_group(self, builder, populated_registry):
        """Test the preview is a group that is not registered."""
        preview = builder.build([(1, 0)])
        assert preview.id == PREVIEW_FORM_ID
        assert preview.kind == FormKind.GROUP
        assert len(populated_registry) == 6

    def test_top_level_leaves(self, builder):
        """Test top-level rows contribute as used seeds."""
        preview = builder.build([(1, 0), (3, 0)])
        assert preview.member_ids() == [1, 3]
        assert all(m.operator is None and m.state.use for m in preview.members)

    def test_nested_leaf_keeps_state(self, builder):
        """Test a nested row keeps its membership's state and opacity."""
        preview = builder.build([(3, 6)])
        member = preview.members[0]
        assert member.operator == OperatorKind.INTERSECTION
        assert member.inverse is True
        assert member.opacity == 0.5

    def test_group_is_inlined(self, builder):
        """Test a selected group is replaced by its leaves."""
        preview = builder.build([(5, 0)])
        assert preview.member_ids() == [1, 2]
        assert preview.members[1].operator == OperatorKind.DIFFERENCE

    def test_nested_groups_flatten_fully(self, builder):
        """Test nested groups are inlined recursively with opacity product."""
        preview = builder.build([(6, 0)])
        assert preview.member_ids() == [1, 2, 3]
        assert all(m.state.use for m in preview.members)
        assert preview.members[2].opacity == 0.5

    def test_opacity_multiplies(self, builder, populated_registry):
        """Test opacities multiply along the nesting path."""
        populated_registry.get(6).get_member(5).opacity = 0.5
        populated_registry.get(5).get_member(2).opacity = 0.4
        preview = builder.build([(6, 0)])
        assert preview.members[1].opacity == pytest.approx(0.2)

    def test_source_not_mutated(self, builder, populated_registry):
        """Test flattening never touches registered memberships."""
        populated_registry.get(5).get_member(2).state.use = False
        builder.build([(5, 0)])
        assert populated_registry.get(5).get_member(2).state.use is False

    def test_skips_clone_and_missing(self, builder):
        preview = builder.build([(4, 0), (99, 0), (1, 0)])
        assert preview.member_ids() == [1]

    def test_only_unusable_selected(self, builder):
        assert builder.build([(4, 0)]) is None

    def test_without_flattening(self, populated_registry):
        """Test groups stay as members when flattening is disabled."""
        preview = PreviewBuilder(populated_registry, flatten_groups=False).build([(5, 0)])
        assert preview.member_ids() == [5]
