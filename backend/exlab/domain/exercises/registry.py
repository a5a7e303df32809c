"""
ExLab - Exercise Registry

In-memory catalog of exercises available to labs, keyed by tag.
"""

from typing import Dict, Iterable, List

import structlog

from exlab.core.errors import DuplicateTagError, MissingTagsError, UnknownTagError

from .entities import Category, ExerciseSpec, is_valid_tag

logger = structlog.get_logger(__name__)


class ExerciseRegistry:
    """
    Registered exercises and categories.
    
    Registration is all-or-nothing: a batch with one bad tag adds nothing.
    """
    
    def __init__(self, exercises: Iterable[ExerciseSpec] = ()):
        self._exercises: Dict[str, ExerciseSpec] = {}
        self._categories: Dict[str, Category] = {}
        exercises = list(exercises)
        if exercises:
            self.register(exercises)
    
    def register(self, exercises: Iterable[ExerciseSpec]) -> None:
        """
        Register a set of exercises.
        
        Raises:
            MissingTagsError: The set is empty or an exercise has no tag
            UnknownTagError: A tag does not match the tag format
            DuplicateTagError: A tag is already registered (or repeated)
        """
        batch = list(exercises)
        if not batch:
            raise MissingTagsError()
        
        seen: Dict[str, ExerciseSpec] = {}
        for exercise in batch:
            tag = exercise.tag
            if not tag:
                raise MissingTagsError()
            if not is_valid_tag(tag):
                raise UnknownTagError(tag, f"Invalid tag format: {tag!r}")
            if tag in self._exercises or tag in seen:
                raise DuplicateTagError(tag)
            seen[tag] = exercise
        
        self._exercises.update(seen)
        logger.info("Exercises registered", tags=list(seen))
    
    def get_by_tags(self, tags: Iterable[str]) -> List[ExerciseSpec]:
        """
        Look up exercises in the order of ``tags``.
        
        Raises:
            MissingTagsError: No tags given
            DuplicateTagError: A tag is repeated
            UnknownTagError: A tag is not registered
        """
        tags = list(tags)
        if not tags:
            raise MissingTagsError()
        
        result = []
        for i, tag in enumerate(tags):
            if tag in tags[:i]:
                raise DuplicateTagError(tag)
            exercise = self._exercises.get(tag)
            if exercise is None:
                raise UnknownTagError(tag)
            result.append(exercise)
        return result
    
    def get_by_category(self, category: str) -> List[ExerciseSpec]:
        return [e for e in self._exercises.values() if e.category == category]
    
    def list(self) -> List[ExerciseSpec]:
        return list(self._exercises.values())
    
    def add_category(self, tag: str, name: str) -> None:
        if not is_valid_tag(tag):
            raise UnknownTagError(tag, f"Invalid category tag: {tag!r}")
        if tag in self._categories:
            raise DuplicateTagError(tag)
        self._categories[tag] = Category(tag=tag, name=name)
    
    def categories(self) -> List[Category]:
        return list(self._categories.values())
    
    def __contains__(self, tag: object) -> bool:
        return tag in self._exercises
    
    def __len__(self) -> int:
        return len(self._exercises)
