"""
Command pattern undo/redo history.
"""

import time
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Sequence

from sonedit.core.config import settings
from sonedit.core.logging import get_logger

logger = get_logger(__name__)


class Command(ABC):
    """
    A reversible edit.

    ``execute`` captures whatever prior state ``undo`` needs, and is called
    again on redo.
    """

    def __init__(self, description: str = "Unknown operation") -> None:
        self.description = description
        self.timestamp = time.time()

    @abstractmethod
    def execute(self) -> Any:
        pass

    @abstractmethod
    def undo(self) -> Any:
        pass

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.description!r})"


class MacroCommand(Command):
    """
    Several commands as one history entry.

    Executes in order and undoes in reverse. If a step fails, the steps
    already done are undone before the error propagates.
    """

    def __init__(self, commands: Sequence[Command], description: str = "Multiple operations"):
        super().__init__(description)
        self.commands = list(commands)

    def execute(self) -> List[Any]:
        results = []
        done: List[Command] = []
        try:
            for command in self.commands:
                results.append(command.execute())
                done.append(command)
        except Exception:
            for command in reversed(done):
                command.undo()
            raise
        return results

    def undo(self) -> List[Any]:
        return [command.undo() for command in reversed(self.commands)]


class HistoryManager:
    """
    Undo and redo stacks.

    Both stacks hold at most ``max_size`` commands; the oldest entry is
    dropped when full. Executing a new command clears the redo stack.
    """

    def __init__(self, max_size: Optional[int] = None) -> None:
        self.max_size = max_size or settings.history_max_size
        self.undo_stack: List[Command] = []
        self.redo_stack: List[Command] = []
        self.is_executing = False

    def _push(self, stack: List[Command], command: Command) -> None:
        stack.append(command)
        if len(stack) > self.max_size:
            dropped = stack.pop(0)
            logger.debug("history_entry_dropped", description=dropped.description)

    def execute_command(self, command: Command) -> Any:
        """
        Execute a command and record it.

        Returns:
            The command's result, or None if called re-entrantly (the
            command is not executed)

        Raises:
            Whatever ``command.execute`` raises; the stacks are unchanged
        """
        if self.is_executing:
            logger.warning("command_ignored_reentrant", description=command.description)
            return None

        self.is_executing = True
        try:
            result = command.execute()
            self._push(self.undo_stack, command)
            self.redo_stack.clear()
        finally:
            self.is_executing = False

        logger.info("command_executed", description=command.description)
        return result

    def undo(self) -> bool:
        """Undo the most recent command; False if there is none."""
        if not self.undo_stack or self.is_executing:
            return False

        self.is_executing = True
        command = self.undo_stack.pop()
        try:
            command.undo()
        except Exception:
            self.undo_stack.append(command)
            raise
        finally:
            self.is_executing = False

        self._push(self.redo_stack, command)
        logger.info("command_undone", description=command.description)
        return True

    def redo(self) -> bool:
        """Re-execute the most recently undone command; False if there is none."""
        if not self.redo_stack or self.is_executing:
            return False

        self.is_executing = True
        command = self.redo_stack.pop()
        try:
            command.execute()
        except Exception:
            self.redo_stack.append(command)
            raise
        finally:
            self.is_executing = False

        self._push(self.undo_stack, command)
        logger.info("command_redone", description=command.description)
        return True

    def can_undo(self) -> bool:
        return bool(self.undo_stack) and not self.is_executing

    def can_redo(self) -> bool:
        return bool(self.redo_stack) and not self.is_executing

    def undo_description(self) -> Optional[str]:
        return self.undo_stack[-1].description if self.undo_stack else None

    def redo_description(self) -> Optional[str]:
        return self.redo_stack[-1].description if self.redo_stack else None

    def clear(self) -> None:
        self.undo_stack.clear()
        self.redo_stack.clear()

    def get_state(self) -> Dict[str, Any]:
        return {
            "can_undo": self.can_undo(),
            "can_redo": self.can_redo(),
            "undo_description": self.undo_description(),
            "redo_description": self.redo_description(),
            "undo_stack_size": len(self.undo_stack),
            "redo_stack_size": len(self.redo_stack),
        }
