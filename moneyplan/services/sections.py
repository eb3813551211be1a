"""
Sections and the section/category assignment engine.

Sections group categories for display inside one period. The engine
keeps two invariants:

- a category maps to at most one section within a period
- display orders are contiguous from 0, both for sections within a
  period and for mappings within a section

Assignment and moves are read-then-write sequences, so they run under
the budget's write lock and finish in a single commit. Nothing here
touches plans or transactions; the mapping is an organizational concern.
"""

from typing import List, Optional

from moneyplan.exceptions import NotFoundError, ValidationError
from moneyplan.logging_config import get_logger
from moneyplan.models.budget import Period, Section, CategoryMapping, Plan
from moneyplan.models.category import Category
from moneyplan.services.base import BaseService, require_text
from moneyplan.services.events import SECTIONS

logger = get_logger(__name__)


def _renumber(records) -> None:
    for index, record in enumerate(records):
        if record.display_order != index:
            record.display_order = index


def _move_item(items: list, from_index: int, to_index: int) -> list:
    if not 0 <= from_index < len(items):
        raise ValidationError("from_index", f"from_index {from_index} is out of range")
    to_index = max(0, min(to_index, len(items) - 1))
    reordered = list(items)
    item = reordered.pop(from_index)
    reordered.insert(to_index, item)
    return reordered


class SectionService(BaseService):

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def get_section(self, section_id: str) -> Section:
        return self._get(Section, section_id, "Section")

    def list_sections(self, period_id: str) -> List[Section]:
        return (
            self.db.query(Section)
            .filter(Section.period_id == period_id)
            .order_by(Section.display_order)
            .all()
        )

    def mappings_in_section(self, section_id: str) -> List[CategoryMapping]:
        return (
            self.db.query(CategoryMapping)
            .filter(CategoryMapping.section_id == section_id)
            .order_by(CategoryMapping.display_order)
            .all()
        )

    def mappings_for_category(self, category_id: str, period_id: str) -> List[CategoryMapping]:
        """Every mapping of ``category_id`` across the sections of one period."""
        return (
            self.db.query(CategoryMapping)
            .join(Section, CategoryMapping.section_id == Section.id)
            .filter(Section.period_id == period_id, CategoryMapping.category_id == category_id)
            .order_by(CategoryMapping.created_at)
            .all()
        )

    def section_for_category(self, category_id: str, period_id: str) -> Optional[Section]:
        mappings = self.mappings_for_category(category_id, period_id)
        return mappings[0].section if mappings else None

    def categories_for_section(self, section_id: str) -> List[Category]:
        return [mapping.category for mapping in self.mappings_in_section(section_id)]

    def plans_for_section(self, section_id: str) -> List[Plan]:
        """Plans of the section's categories, in the section's display order."""
        section = self.get_section(section_id)
        order = {m.category_id: m.display_order for m in self.mappings_in_section(section_id)}
        if not order:
            return []
        plans = (
            self.db.query(Plan)
            .filter(Plan.period_id == section.period_id, Plan.category_id.in_(list(order)))
            .all()
        )
        return sorted(plans, key=lambda plan: order[plan.category_id])

    # ------------------------------------------------------------------
    # Sections
    # ------------------------------------------------------------------

    def create_section(self, period_id: str, name: str) -> Section:
        period = self._get(Period, period_id, "Period")
        name = require_text(name, "name")
        with self.locks.writing(period.budget_id):
            section = self._create_section(period, name)
            self._save("create section")
        logger.info(f"Section created: {section.id} ({section.name}) at {section.display_order} in {period.id}")

        self.activity.record("section_created", f"Created section {section.name}")
        self._publish(SECTIONS, budget_id=period.budget_id, period_id=period.id, action="created", id=section.id)
        return section

    def _create_section(self, period: Period, name: str, display_order: Optional[int] = None) -> Section:
        """Append (or insert at ``display_order``) a section; flushes, does not commit."""
        existing = self.list_sections(period.id)
        if display_order is None or display_order >= len(existing):
            display_order = len(existing)
        else:
            for sibling in existing[max(display_order, 0):]:
                sibling.display_order += 1
        section = Section(period_id=period.id, name=name, display_order=max(display_order, 0))
        self.db.add(section)
        self._flush("create section")
        return section

    def rename_section(self, section_id: str, name: str) -> Section:
        section = self.get_section(section_id)
        name = require_text(name, "name")
        with self.locks.writing(section.period.budget_id):
            section.name = name
            self._save("rename section")
        logger.info(f"Section renamed: {section.id} -> {name}")

        self.activity.record("section_updated", f"Renamed section to {name}")
        self._publish(SECTIONS, budget_id=section.period.budget_id, period_id=section.period_id,
                      action="updated", id=section.id)
        return section

    def delete_section(self, section_id: str) -> None:
        """Delete a section with its mappings; remaining sections are renumbered."""
        section = self.get_section(section_id)
        period = section.period
        name = section.name
        with self.locks.writing(period.budget_id):
            self.db.delete(section)
            self._flush("delete section")
            _renumber(self.list_sections(period.id))
            self._save("delete section")
        logger.info(f"Section deleted: {section_id} from period {period.id}")

        self.activity.record("section_deleted", f"Deleted section {name}")
        self._publish(SECTIONS, budget_id=period.budget_id, period_id=period.id, action="deleted", id=section_id)

    def reorder_sections(self, period_id: str, from_index: int, to_index: int) -> List[Section]:
        period = self._get(Period, period_id, "Period")
        with self.locks.writing(period.budget_id):
            sections = _move_item(self.list_sections(period_id), from_index, to_index)
            _renumber(sections)
            self._save("reorder sections")
        self._publish(SECTIONS, budget_id=period.budget_id, period_id=period_id, action="reordered", id=period_id)
        return sections

    # ------------------------------------------------------------------
    # Assignment engine
    # ------------------------------------------------------------------

    def assign(self, category_id: str, section_id: str, position: Optional[int] = None) -> CategoryMapping:
        """
        Place a category in a section.

        Mappings of the category to other sections of the same period are
        deleted first. If the category is already in the target section it
        is left untouched. Otherwise the new mapping goes last, or at
        ``position`` with later entries shifted down by one.
        """
        section = self.get_section(section_id)
        category = self._get(Category, category_id, "Category")
        period = section.period
        with self.locks.writing(period.budget_id):
            mapping = self._assign(category, section, position)
            self._save("assign category to section")
        logger.info(f"Category {category.id} assigned to section {section.id} at {mapping.display_order}")

        self._publish(SECTIONS, budget_id=period.budget_id, period_id=period.id, action="assigned", id=mapping.id)
        return mapping

    def _assign(self, category: Category, section: Section, position: Optional[int] = None) -> CategoryMapping:
        """Assignment without commit; the caller owns the unit of work."""
        if position is not None and position < 0:
            raise ValidationError("position", "position cannot be negative")
        existing = self.mappings_for_category(category.id, section.period_id)

        keep = None
        touched_sections = set()
        for mapping in existing:
            if mapping.section_id == section.id and keep is None:
                keep = mapping
                continue
            touched_sections.add(mapping.section_id)
            self.db.delete(mapping)
        if existing:
            self._flush("remove stale category mappings")
            for stale_section_id in touched_sections:
                _renumber(self.mappings_in_section(stale_section_id))
        if keep is not None:
            return keep

        ordered = self.mappings_in_section(section.id)
        if position is None or position >= len(ordered):
            display_order = max((m.display_order for m in ordered), default=-1) + 1
        else:
            for sibling in ordered[position:]:
                sibling.display_order += 1
            display_order = position

        mapping = CategoryMapping(section_id=section.id, category_id=category.id, display_order=display_order)
        self.db.add(mapping)
        self._flush("insert category mapping")
        return mapping

    def move(self, category_id: str, from_section_id: str, to_section_id: str, position: int = 0) -> CategoryMapping:
        """
        Move a category between sections of the same period.

        The source section is renumbered contiguously and entries of the
        target at or after ``position`` shift down by one. The mapping row
        is re-parented rather than deleted and re-inserted, and all changes
        land in one commit, so a failure leaves the category where it was.
        """
        from_section = self.get_section(from_section_id)
        to_section = self.get_section(to_section_id)
        if from_section.period_id != to_section.period_id:
            raise ValidationError("to_section_id", "Sections belong to different periods")
        if position < 0:
            raise ValidationError("position", "position cannot be negative")
        period = from_section.period

        with self.locks.writing(period.budget_id):
            source = self.mappings_in_section(from_section.id)
            mapping = next((m for m in source if m.category_id == category_id), None)
            if mapping is None:
                raise NotFoundError("CategoryMapping", f"{category_id} in {from_section_id}")

            if from_section.id == to_section.id:
                current = source.index(mapping)
                _renumber(_move_item(source, current, position))
            else:
                # Stray duplicates elsewhere in the period are dropped
                strays = [m for m in self.mappings_for_category(category_id, period.id) if m.id != mapping.id]
                for other in strays:
                    self.db.delete(other)
                if strays:
                    self._flush("remove stale category mappings")
                    for stray_section_id in {m.section_id for m in strays} - {from_section.id, to_section.id}:
                        _renumber(self.mappings_in_section(stray_section_id))

                remaining = [m for m in source if m.id != mapping.id]
                target = [m for m in self.mappings_in_section(to_section.id) if m.category_id != category_id]
                position = min(position, len(target))
                target.insert(position, mapping)

                mapping.section_id = to_section.id
                _renumber(remaining)
                _renumber(target)
            self._save("move category between sections")

        remaining_count = len(self.mappings_for_category(category_id, period.id))
        if remaining_count != 1:
            logger.error(f"Category {category_id} has {remaining_count} mappings in period {period.id} after move")
        logger.info(f"Category {category_id} moved {from_section.id} -> {to_section.id} at {position}")

        self._publish(SECTIONS, budget_id=period.budget_id, period_id=period.id, action="moved", id=mapping.id)
        return mapping

    def reorder(self, section_id: str, from_index: int, to_index: int) -> List[CategoryMapping]:
        """Reorder categories within a section; only display orders change."""
        section = self.get_section(section_id)
        with self.locks.writing(section.period.budget_id):
            mappings = _move_item(self.mappings_in_section(section_id), from_index, to_index)
            _renumber(mappings)
            self._save("reorder section")
        self._publish(SECTIONS, budget_id=section.period.budget_id, period_id=section.period_id,
                      action="reordered", id=section_id)
        return mappings

    def unassign(self, category_id: str, period_id: str) -> int:
        """Remove a category from whichever section holds it; returns mappings removed."""
        period = self._get(Period, period_id, "Period")
        with self.locks.writing(period.budget_id):
            mappings = self.mappings_for_category(category_id, period_id)
            sections = {m.section_id for m in mappings}
            for mapping in mappings:
                self.db.delete(mapping)
            self._flush("unassign category")
            for section_id in sections:
                _renumber(self.mappings_in_section(section_id))
            self._save("unassign category")
        if mappings:
            self._publish(SECTIONS, budget_id=period.budget_id, period_id=period_id, action="unassigned", id=category_id)
        return len(mappings)

    def cleanup_duplicate_mappings(self, period_id: str) -> int:
        """
        Repair a period whose categories appear more than once; the earliest
        mapping of each category wins. Returns the number of rows deleted.
        """
        period = self._get(Period, period_id, "Period")
        deleted = 0
        with self.locks.writing(period.budget_id):
            seen = set()
            sections = self.list_sections(period_id)
            for section in sections:
                for mapping in self.mappings_in_section(section.id):
                    if mapping.category_id in seen:
                        self.db.delete(mapping)
                        deleted += 1
                    else:
                        seen.add(mapping.category_id)
            if deleted:
                self._flush("remove duplicate mappings")
                for section in sections:
                    _renumber(self.mappings_in_section(section.id))
                self._save("clean up duplicate mappings")
                logger.info(f"Removed {deleted} duplicate category mappings in period {period_id}")
        return deleted
