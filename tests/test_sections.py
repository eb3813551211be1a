"""
Tests for sections and the section/category assignment engine.

The core invariant: within one period a category maps to at most one
section, and display orders stay contiguous from 0.
"""

import pytest
from collections import Counter
from typing import Dict

from sqlalchemy.orm import Session

from moneyplan.exceptions import NotFoundError, ValidationError
from moneyplan.models import EXPENSE
from moneyplan.models.budget import CategoryMapping, Period, Plan, Section
from moneyplan.models.category import Category
from moneyplan.services.events import SECTIONS
from moneyplan.services.periods import PeriodService
from moneyplan.services.planning import PlanningService
from moneyplan.services.sections import SectionService


def _order(service: SectionService, section: Section):
    return [(m.category.name, m.display_order) for m in service.mappings_in_section(section.id)]


def _mapping_counts(db: Session, period: Period) -> Counter:
    rows = (
        db.query(CategoryMapping.category_id)
        .join(Section, CategoryMapping.section_id == Section.id)
        .filter(Section.period_id == period.id)
        .all()
    )
    return Counter(row[0] for row in rows)


class TestSectionCrud:
    """Test suite for section create/rename/delete/reorder."""

    def test_create_appends(self, sections: Dict[str, Section], section_service: SectionService, january: Period):
        extra = section_service.create_section(january.id, "Savings")

        assert sections["Essentials"].display_order == 0
        assert sections["Lifestyle"].display_order == 1
        assert extra.display_order == 2

    def test_blank_name_rejected(self, section_service: SectionService, january: Period):
        with pytest.raises(ValidationError):
            section_service.create_section(january.id, "  ")

    def test_rename(self, sections: Dict[str, Section], section_service: SectionService):
        renamed = section_service.rename_section(sections["Lifestyle"].id, "Fun")
        assert renamed.name == "Fun"

    def test_delete_renumbers_and_keeps_plans(
        self,
        db_session: Session,
        january: Period,
        sections: Dict[str, Section],
        categories: Dict[str, Category],
        section_service: SectionService,
        planning_service: PlanningService,
    ):
        """Test deleting a section removes its mappings but not the plans of its categories."""
        third = section_service.create_section(january.id, "Savings")
        section_service.assign(categories["Groceries"].id, sections["Essentials"].id)
        planning_service.create_or_update_plan(january.id, categories["Groceries"].id, EXPENSE, 50000)

        section_service.delete_section(sections["Essentials"].id)

        remaining = section_service.list_sections(january.id)
        assert [(s.name, s.display_order) for s in remaining] == [("Lifestyle", 0), ("Savings", 1)]
        assert third.id in [s.id for s in remaining]
        assert db_session.query(CategoryMapping).count() == 0
        assert db_session.query(Plan).count() == 1

    def test_reorder_sections(self, january: Period, sections: Dict[str, Section], section_service: SectionService):
        section_service.create_section(january.id, "Savings")

        reordered = section_service.reorder_sections(january.id, 2, 0)

        assert [(s.name, s.display_order) for s in reordered] == [
            ("Savings", 0), ("Essentials", 1), ("Lifestyle", 2),
        ]


class TestAssign:
    """Test suite for assign()."""

    def test_appends_in_order(
        self, sections: Dict[str, Section], categories: Dict[str, Category], section_service: SectionService
    ):
        essentials = sections["Essentials"]
        section_service.assign(categories["Groceries"].id, essentials.id)
        section_service.assign(categories["Rent"].id, essentials.id)

        assert _order(section_service, essentials) == [("Groceries", 0), ("Rent", 1)]

    def test_idempotent(
        self,
        db_session: Session,
        january: Period,
        sections: Dict[str, Section],
        categories: Dict[str, Category],
        section_service: SectionService,
    ):
        """Test assigning twice with the same arguments yields one unchanged mapping."""
        essentials = sections["Essentials"]
        section_service.assign(categories["Rent"].id, essentials.id)
        first = section_service.assign(categories["Groceries"].id, essentials.id, 0)
        second = section_service.assign(categories["Groceries"].id, essentials.id, 0)

        assert first.id == second.id
        assert _order(section_service, essentials) == [("Groceries", 0), ("Rent", 1)]
        assert _mapping_counts(db_session, january)[categories["Groceries"].id] == 1

    def test_reassign_removes_old_mapping(
        self,
        db_session: Session,
        january: Period,
        sections: Dict[str, Section],
        categories: Dict[str, Category],
        section_service: SectionService,
    ):
        """Test a category assigned elsewhere leaves its previous section, which is renumbered."""
        essentials, lifestyle = sections["Essentials"], sections["Lifestyle"]
        section_service.assign(categories["Groceries"].id, essentials.id)
        section_service.assign(categories["Rent"].id, essentials.id)

        section_service.assign(categories["Groceries"].id, lifestyle.id)

        assert _order(section_service, essentials) == [("Rent", 0)]
        assert _order(section_service, lifestyle) == [("Groceries", 0)]
        assert _mapping_counts(db_session, january)[categories["Groceries"].id] == 1

    def test_explicit_position_shifts_later_entries(
        self, sections: Dict[str, Section], categories: Dict[str, Category], section_service: SectionService
    ):
        essentials = sections["Essentials"]
        section_service.assign(categories["Groceries"].id, essentials.id)
        section_service.assign(categories["Rent"].id, essentials.id)

        section_service.assign(categories["Utilities"].id, essentials.id, position=1)

        assert _order(section_service, essentials) == [("Groceries", 0), ("Utilities", 1), ("Rent", 2)]

    def test_position_beyond_end_appends(
        self, sections: Dict[str, Section], categories: Dict[str, Category], section_service: SectionService
    ):
        essentials = sections["Essentials"]
        section_service.assign(categories["Groceries"].id, essentials.id)

        mapping = section_service.assign(categories["Rent"].id, essentials.id, position=10)

        assert mapping.display_order == 1

    def test_negative_position_leaves_existing_mapping(
        self,
        db_session: Session,
        january: Period,
        sections: Dict[str, Section],
        categories: Dict[str, Category],
        section_service: SectionService,
        planning_service: PlanningService,
    ):
        """Test a rejected position does not drop the category from its current section."""
        groceries = categories["Groceries"]
        section_service.assign(groceries.id, sections["Essentials"].id)

        with pytest.raises(ValidationError) as exc_info:
            section_service.assign(groceries.id, sections["Lifestyle"].id, position=-1)
        assert exc_info.value.field == "position"

        # A later commit on the same session must not carry a half-done reassignment
        planning_service.create_or_update_plan(january.id, categories["Rent"].id, EXPENSE, 180000)
        db_session.expire_all()

        assert _mapping_counts(db_session, january)[groceries.id] == 1
        assert _order(section_service, sections["Essentials"]) == [("Groceries", 0)]

    def test_same_category_in_another_period_is_independent(
        self,
        db_session: Session,
        january: Period,
        sections: Dict[str, Section],
        categories: Dict[str, Category],
        section_service: SectionService,
        period_service: PeriodService,
    ):
        """Test the one-section rule is scoped to a period."""
        february = period_service.create_next_period(january)
        feb_section = section_service.create_section(february.id, "Essentials")

        section_service.assign(categories["Groceries"].id, sections["Essentials"].id)
        section_service.assign(categories["Groceries"].id, feb_section.id)

        assert _mapping_counts(db_session, january)[categories["Groceries"].id] == 1
        assert _mapping_counts(db_session, february)[categories["Groceries"].id] == 1

    def test_unknown_category(self, sections: Dict[str, Section], section_service: SectionService):
        with pytest.raises(NotFoundError):
            section_service.assign("cat-missing", sections["Essentials"].id)

    def test_publishes_after_commit(
        self, sections: Dict[str, Section], categories: Dict[str, Category], section_service: SectionService, bus
    ):
        events = []
        bus.subscribe(SECTIONS, events.append)

        section_service.assign(categories["Groceries"].id, sections["Essentials"].id)

        assert [e.payload["action"] for e in events] == ["assigned"]


class TestMove:
    """Test suite for move() and reorder()."""

    def test_move_between_sections(
        self,
        db_session: Session,
        january: Period,
        sections: Dict[str, Section],
        categories: Dict[str, Category],
        section_service: SectionService,
    ):
        """Test A(2 mappings) -> B(1 mapping) at position 0 renumbers both sides."""
        a, b = sections["Essentials"], sections["Lifestyle"]
        section_service.assign(categories["Groceries"].id, a.id)
        section_service.assign(categories["Rent"].id, a.id)
        section_service.assign(categories["Restaurant"].id, b.id)

        section_service.move(categories["Groceries"].id, a.id, b.id, 0)

        assert _order(section_service, a) == [("Rent", 0)]
        assert _order(section_service, b) == [("Groceries", 0), ("Restaurant", 1)]
        assert _mapping_counts(db_session, january)[categories["Groceries"].id] == 1

    def test_move_to_end(
        self, sections: Dict[str, Section], categories: Dict[str, Category], section_service: SectionService
    ):
        a, b = sections["Essentials"], sections["Lifestyle"]
        section_service.assign(categories["Groceries"].id, a.id)
        section_service.assign(categories["Restaurant"].id, b.id)

        section_service.move(categories["Groceries"].id, a.id, b.id, 99)

        assert _order(section_service, a) == []
        assert _order(section_service, b) == [("Restaurant", 0), ("Groceries", 1)]

    def test_move_within_same_section(
        self, sections: Dict[str, Section], categories: Dict[str, Category], section_service: SectionService
    ):
        a = sections["Essentials"]
        for name in ("Groceries", "Rent", "Utilities"):
            section_service.assign(categories[name].id, a.id)

        section_service.move(categories["Utilities"].id, a.id, a.id, 0)

        assert _order(section_service, a) == [("Utilities", 0), ("Groceries", 1), ("Rent", 2)]

    def test_move_missing_mapping(
        self, sections: Dict[str, Section], categories: Dict[str, Category], section_service: SectionService
    ):
        with pytest.raises(NotFoundError):
            section_service.move(categories["Rent"].id, sections["Essentials"].id, sections["Lifestyle"].id, 0)

    def test_move_across_periods_rejected(
        self,
        january: Period,
        sections: Dict[str, Section],
        categories: Dict[str, Category],
        section_service: SectionService,
        period_service: PeriodService,
    ):
        february = period_service.create_next_period(january)
        feb_section = section_service.create_section(february.id, "Essentials")
        section_service.assign(categories["Rent"].id, sections["Essentials"].id)

        with pytest.raises(ValidationError):
            section_service.move(categories["Rent"].id, sections["Essentials"].id, feb_section.id, 0)

    def test_reorder_only_changes_display_order(
        self,
        db_session: Session,
        january: Period,
        sections: Dict[str, Section],
        categories: Dict[str, Category],
        section_service: SectionService,
        planning_service: PlanningService,
    ):
        a = sections["Essentials"]
        for name in ("Groceries", "Rent", "Utilities"):
            section_service.assign(categories[name].id, a.id)
        plan = planning_service.create_or_update_plan(january.id, categories["Rent"].id, EXPENSE, 180000)

        section_service.reorder(a.id, 0, 2)

        assert _order(section_service, a) == [("Rent", 0), ("Utilities", 1), ("Groceries", 2)]
        assert db_session.get(Plan, plan.id).amount_cents == 180000

    def test_reorder_out_of_range(self, sections: Dict[str, Section], section_service: SectionService):
        with pytest.raises(ValidationError):
            section_service.reorder(sections["Essentials"].id, 3, 0)

    def test_invariant_after_mixed_operations(
        self,
        db_session: Session,
        january: Period,
        sections: Dict[str, Section],
        categories: Dict[str, Category],
        section_service: SectionService,
    ):
        """Test at most one mapping per category after a run of assign/move calls."""
        a, b = sections["Essentials"], sections["Lifestyle"]
        ids = {name: categories[name].id for name in ("Groceries", "Rent", "Restaurant", "Utilities")}

        section_service.assign(ids["Groceries"], a.id)
        section_service.assign(ids["Rent"], a.id)
        section_service.assign(ids["Restaurant"], b.id, position=0)
        section_service.move(ids["Rent"], a.id, b.id, 1)
        section_service.assign(ids["Groceries"], b.id, position=0)
        section_service.assign(ids["Utilities"], a.id)
        section_service.move(ids["Groceries"], b.id, a.id, 0)
        section_service.assign(ids["Rent"], a.id)

        counts = _mapping_counts(db_session, january)
        assert all(count == 1 for count in counts.values())
        for section in (a, b):
            orders = [m.display_order for m in section_service.mappings_in_section(section.id)]
            assert orders == list(range(len(orders)))


class TestSectionQueries:
    """Test suite for section lookups and repair."""

    def test_categories_and_plans_for_section(
        self,
        january: Period,
        sections: Dict[str, Section],
        categories: Dict[str, Category],
        section_service: SectionService,
        planning_service: PlanningService,
    ):
        a = sections["Essentials"]
        section_service.assign(categories["Rent"].id, a.id)
        section_service.assign(categories["Groceries"].id, a.id)
        planning_service.create_or_update_plan(january.id, categories["Groceries"].id, EXPENSE, 50000)
        planning_service.create_or_update_plan(january.id, categories["Rent"].id, EXPENSE, 180000)

        assert [c.name for c in section_service.categories_for_section(a.id)] == ["Rent", "Groceries"]
        assert [p.amount_cents for p in section_service.plans_for_section(a.id)] == [180000, 50000]
        assert section_service.section_for_category(categories["Rent"].id, january.id).id == a.id

    def test_unassign(
        self,
        january: Period,
        sections: Dict[str, Section],
        categories: Dict[str, Category],
        section_service: SectionService,
    ):
        a = sections["Essentials"]
        section_service.assign(categories["Groceries"].id, a.id)
        section_service.assign(categories["Rent"].id, a.id)

        removed = section_service.unassign(categories["Groceries"].id, january.id)

        assert removed == 1
        assert _order(section_service, a) == [("Rent", 0)]

    def test_cleanup_duplicate_mappings(
        self,
        db_session: Session,
        january: Period,
        sections: Dict[str, Section],
        categories: Dict[str, Category],
        section_service: SectionService,
    ):
        """Test repair of a period where a category ended up in two sections."""
        a, b = sections["Essentials"], sections["Lifestyle"]
        section_service.assign(categories["Groceries"].id, a.id)
        section_service.assign(categories["Restaurant"].id, b.id)
        db_session.add(CategoryMapping(section_id=b.id, category_id=categories["Groceries"].id, display_order=5))
        db_session.commit()

        deleted = section_service.cleanup_duplicate_mappings(january.id)

        assert deleted == 1
        assert _order(section_service, a) == [("Groceries", 0)]
        assert _order(section_service, b) == [("Restaurant", 0)]
        assert section_service.cleanup_duplicate_mappings(january.id) == 0
