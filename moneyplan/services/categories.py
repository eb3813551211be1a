"""
Head categories and categories.

Categories are global to the app (not period-scoped). Archiving hides a
category from selection lists while keeping it resolvable for the plans
and transactions that already reference it.
"""

from typing import List, Optional

from moneyplan.exceptions import ValidationError
from moneyplan.logging_config import get_logger
from moneyplan.models import INCOME, EXPENSE
from moneyplan.models.category import HeadCategory, Category
from moneyplan.services.base import BaseService, require_entry_type, require_text

logger = get_logger(__name__)

# Seeded on first run: (head name, type, icon, color, order, [(name, icon, color), ...])
SYSTEM_CATEGORIES = [
    ("Transportation", EXPENSE, "car.fill", "#3B82F6", 10, [
        ("Car Expense", "car.side", "#60A5FA"),
        ("Train Fare", "tram.fill", "#93C5FD"),
        ("Uber/Taxi", "car.circle", "#DBEAFE"),
    ]),
    ("Income", INCOME, "dollarsign.circle.fill", "#10B981", 20, [
        ("Salary", "briefcase.fill", "#34D399"),
        ("Bonus", "star.fill", "#6EE7B7"),
    ]),
    ("Food & Dining", EXPENSE, "fork.knife", "#F59E0B", 30, [
        ("Groceries", "cart.fill", "#FBBF24"),
        ("Restaurant", "takeoutbag.and.cup.and.straw.fill", "#FCD34D"),
    ]),
    ("Housing", EXPENSE, "house.fill", "#8B5CF6", 40, [
        ("Rent", "key.fill", "#A78BFA"),
        ("Utilities", "bolt.fill", "#C4B5FD"),
    ]),
]


class CategoryService(BaseService):

    # ------------------------------------------------------------------
    # Head categories
    # ------------------------------------------------------------------

    def create_head_category(
        self,
        name: str,
        prefer_type: str,
        icon: Optional[str] = None,
        color: Optional[str] = None,
        display_order: int = 0,
        is_system: bool = False,
        commit: bool = True,
    ) -> HeadCategory:
        head = HeadCategory(
            name=require_text(name, "name"),
            prefer_type=require_entry_type(prefer_type, "prefer_type"),
            icon=icon,
            color=color,
            display_order=display_order,
            is_system=is_system,
        )
        self.db.add(head)
        if commit:
            self._save("create head category")
            logger.info(f"Head category created: {head.id} ({head.name})")
        return head

    def get_head_category(self, head_category_id: str) -> HeadCategory:
        return self._get(HeadCategory, head_category_id, "HeadCategory")

    def active_head_categories(self) -> List[HeadCategory]:
        return (
            self.db.query(HeadCategory)
            .filter(HeadCategory.is_archived == False)  # noqa: E712
            .order_by(HeadCategory.display_order)
            .all()
        )

    def archive_head_category(self, head_category_id: str) -> HeadCategory:
        head = self.get_head_category(head_category_id)
        head.is_archived = True
        self._save("archive head category")
        logger.info(f"Head category archived: {head.id}")
        return head

    # ------------------------------------------------------------------
    # Categories
    # ------------------------------------------------------------------

    def create_category(
        self,
        head_category_id: str,
        name: str,
        icon: Optional[str] = None,
        color: Optional[str] = None,
        display_order: int = 0,
        is_system: bool = False,
    ) -> Category:
        head = self.get_head_category(head_category_id)
        category = Category(
            head_category=head,
            name=require_text(name, "name"),
            icon=icon,
            color=color,
            display_order=display_order,
            is_system=is_system,
        )
        self.db.add(category)
        self._save("create category")
        logger.info(f"Category created: {category.id} ({category.name}) under {head.name}")
        return category

    def get_category(self, category_id: str) -> Category:
        return self._get(Category, category_id, "Category")

    def update_category(
        self,
        category_id: str,
        name: Optional[str] = None,
        icon: Optional[str] = None,
        color: Optional[str] = None,
        display_order: Optional[int] = None,
    ) -> Category:
        category = self.get_category(category_id)
        if name is not None:
            name = require_text(name, "name")
        if display_order is not None and display_order < 0:
            raise ValidationError("display_order", "display_order cannot be negative")

        if name is not None:
            category.name = name
        if icon is not None:
            category.icon = icon
        if color is not None:
            category.color = color
        if display_order is not None:
            category.display_order = display_order
        self._save("update category")
        return category

    def archive_category(self, category_id: str) -> Category:
        category = self.get_category(category_id)
        category.is_archived = True
        self._save("archive category")
        logger.info(f"Category archived: {category.id}")
        return category

    def _active_query(self):
        return (
            self.db.query(Category)
            .join(HeadCategory, Category.head_category_id == HeadCategory.id)
            .filter(Category.is_archived == False)  # noqa: E712
            .order_by(HeadCategory.display_order, Category.display_order)
        )

    def active_categories(self) -> List[Category]:
        """Categories offered for selection (archived ones excluded)."""
        return self._active_query().all()

    def categories_of_type(self, entry_type: str) -> List[Category]:
        require_entry_type(entry_type)
        return self._active_query().filter(HeadCategory.prefer_type == entry_type).all()

    def search_categories(self, query: str) -> List[Category]:
        if not query:
            return self.active_categories()
        return self._active_query().filter(Category.name.ilike(f"%{query}%")).all()

    def find_by_name(self, name: str) -> Optional[Category]:
        return self.db.query(Category).filter(Category.name == name).first()

    def seed_system_categories(self) -> int:
        """Create the built-in categories once; returns how many categories were added."""
        existing = self.db.query(HeadCategory).filter(HeadCategory.is_system == True).count()  # noqa: E712
        if existing:
            logger.debug("System categories already seeded")
            return 0

        created = 0
        for head_name, prefer_type, icon, color, order, children in SYSTEM_CATEGORIES:
            head = self.create_head_category(
                head_name, prefer_type, icon=icon, color=color,
                display_order=order, is_system=True, commit=False,
            )
            for index, (name, child_icon, child_color) in enumerate(children, start=1):
                self.db.add(Category(
                    head_category=head,
                    name=name,
                    icon=child_icon,
                    color=child_color,
                    display_order=index,
                    is_system=True,
                ))
                created += 1
        self._save("seed system categories")
        logger.info(f"Seeded {created} system categories")
        return created
