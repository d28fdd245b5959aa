# src/collab_tracker/cli/commands.py

from __future__ import annotations

import inspect
import logging
import shlex
from collections.abc import Awaitable, Callable
from typing import cast

from ..core.models import ProjectStatus, TaskStatus
from ..core.state import AppState
from ..tracker import api
from ..tracker.stats import overall_analytics, personal_stats, project_analytics, task_stats

CommandEmitter = Callable[[str], None]
CommandResult = str | Awaitable[str]
CommandHandler2 = Callable[[AppState, list[str]], CommandResult]
CommandHandler3 = Callable[[AppState, list[str], CommandEmitter | None], CommandResult]
CommandHandler = CommandHandler2 | CommandHandler3

logger = logging.getLogger(__name__)


class CommandRegistry:
    """Slash-command registry used by the console connector (/help, /projects, ...)."""

    def __init__(self) -> None:
        self._handlers: dict[str, CommandHandler] = {}
        self._help: dict[str, str] = {}

    def register(
        self,
        name: str,
        handler: CommandHandler,
        help_text: str,
        aliases: list[str] | None = None,
    ) -> None:
        aliases = aliases or []
        key = name.lower()
        self._handlers[key] = handler
        self._help[key] = help_text
        for alias in aliases:
            self._handlers[alias.lower()] = handler

    async def handle(
        self,
        state: AppState,
        line: str,
        emit: CommandEmitter | None = None,
    ) -> str | None:
        """
        Handle a string like "/command args".
        Arguments are shell-split, so quoted titles keep their spaces.
        Returns a reply string or None if not a command.
        """
        if not line.startswith("/"):
            return None

        try:
            parts = shlex.split(line[1:])
        except ValueError as e:
            return f"Cannot parse command: {e}"
        if not parts:
            return "Empty command. Use /help to list available commands."

        name = parts[0].lower()
        args = parts[1:]

        handler = self._handlers.get(name)
        if not handler:
            return f"Unknown command: /{name}. Use /help to list available commands."

        try:
            nparams = len(inspect.signature(handler).parameters)
        except (TypeError, ValueError):
            nparams = 3

        if nparams >= 3:
            result = cast(CommandHandler3, handler)(state, args, emit)
        else:
            result = cast(CommandHandler2, handler)(state, args)

        if inspect.isawaitable(result):
            return await result
        return result

    def build_help(self) -> str:
        lines = ["Available commands:"]
        for name, help_text in self._help.items():
            lines.append(f"  /{name} - {help_text}")
        return "\n".join(lines)


registry = CommandRegistry()


def _outcome(state: AppState, text: str) -> str:
    """Append (and acknowledge) the provider's error banner, if any."""
    err = state.provider.error
    if not err:
        return text
    state.provider.clear_error()
    return f"{text}\n[!] {err}"


def _require_login(state: AppState) -> str | None:
    if state.provider.session is None:
        return "Not logged in. Use /login <username> <password>."
    return None


def cmd_help(state: AppState, args: list[str]) -> str:
    return registry.build_help()


async def cmd_login(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    if len(args) != 2:
        return "Usage: /login <username> <password>"
    if emit is not None:
        emit("Loading projects and tasks...")
    if not await api.login(state, args[0], args[1]):
        return "Invalid username or password."
    user = state.auth.current_user
    name = user.display_name if user else args[0]
    return _outcome(
        state,
        f"Welcome, {name}. {len(state.provider.projects)} project(s), {len(state.provider.tasks)} task(s).",
    )


async def cmd_logout(state: AppState, args: list[str]) -> str:
    if state.provider.session is None:
        return "Not logged in."
    await api.logout(state)
    return "Logged out."


def cmd_whoami(state: AppState, args: list[str]) -> str:
    user = state.auth.current_user
    if user is None:
        return "Not logged in."
    remote = "remote + local mirror" if state.remote is not None else "local mirror only"
    return f"{user.display_name} (id={user.id}, username={user.username}); storage: {remote}"


def cmd_rename(state: AppState, args: list[str]) -> str:
    user = state.auth.current_user
    if user is None:
        return "Not logged in."
    if not args:
        return "Usage: /rename <display name>"
    renamed = state.auth.rename(user.id, " ".join(args))
    if renamed is None:
        return "Display name must not be empty."
    return f"You are now shown as {renamed.display_name}."


def cmd_projects(state: AppState, args: list[str]) -> str:
    if msg := _require_login(state):
        return msg
    projects = state.provider.projects
    if not projects:
        return "No projects yet. Use /add-project <name> [description]."
    lines = ["Projects:"]
    for p in projects:
        a = project_analytics(p, state.provider.tasks_for_project(p.id))
        owner = state.auth.display_name(p.created_by)
        lines.append(
            f"  [{p.id}] {p.name} ({p.status}) - {a.completed}/{a.total} done ({a.completion_rate}%), by {owner}"
        )
    return "\n".join(lines)


def cmd_tasks(state: AppState, args: list[str]) -> str:
    if msg := _require_login(state):
        return msg
    tasks = state.provider.tasks
    if args:
        try:
            wanted = TaskStatus(args[0])
        except ValueError:
            return f"Unknown status {args[0]!r}. Use one of: {', '.join(s.value for s in TaskStatus)}"
        tasks = [t for t in tasks if t.status == wanted]
    if not tasks:
        return "No tasks."
    lines = ["Tasks:"]
    for t in tasks:
        project = state.provider.find_project(t.project_id)
        extra = f", assigned to {state.auth.display_name(t.assigned_to)}" if t.assigned_to else ""
        due = f", due {t.due_date}" if t.due_date else ""
        lines.append(
            f"  [{t.id}] {t.title} ({t.status}, {t.priority}) in "
            f"{project.name if project else 'Unknown Project'}{extra}{due}"
        )
    return "\n".join(lines)


async def cmd_add_project(state: AppState, args: list[str]) -> str:
    if msg := _require_login(state):
        return msg
    if not args:
        return "Usage: /add-project <name> [description] [active|completed|on-hold]"
    name = args[0]
    description = args[1] if len(args) > 1 else ""
    status = args[2] if len(args) > 2 else ProjectStatus.ACTIVE
    project = await state.provider.add_project(name=name, description=description, status=status)
    if project is None:
        return _outcome(state, "Project was not created.")
    return _outcome(state, f"Created project [{project.id}] {project.name}.")


async def cmd_project_status(state: AppState, args: list[str]) -> str:
    if msg := _require_login(state):
        return msg
    if len(args) != 2:
        return "Usage: /project-status <project_id> <active|completed|on-hold>"
    project = await state.provider.update_project(args[0], {"status": args[1]})
    if project is None:
        return _outcome(state, "Project was not updated.")
    return _outcome(state, f"Project [{project.id}] is now {project.status}.")


async def cmd_delete_project(state: AppState, args: list[str]) -> str:
    if msg := _require_login(state):
        return msg
    if len(args) != 1:
        return "Usage: /delete-project <project_id>"
    if not await state.provider.delete_project(args[0]):
        return _outcome(state, "Project was not deleted.")
    return _outcome(state, f"Deleted project {args[0]} and its tasks.")


async def cmd_add_task(state: AppState, args: list[str]) -> str:
    if msg := _require_login(state):
        return msg
    if len(args) < 2:
        return "Usage: /add-task <project_id> <title> [low|medium|high] [due_date]"
    task = await state.provider.add_task(
        project_id=args[0],
        title=args[1],
        priority=args[2] if len(args) > 2 else "medium",
        due_date=args[3] if len(args) > 3 else None,
    )
    if task is None:
        return _outcome(state, "Task was not created.")
    return _outcome(state, f"Created task [{task.id}] {task.title} ({task.priority}).")


async def cmd_delete_task(state: AppState, args: list[str]) -> str:
    if msg := _require_login(state):
        return msg
    if len(args) != 1:
        return "Usage: /delete-task <task_id>"
    if not await state.provider.delete_task(args[0]):
        return _outcome(state, "Task was not deleted.")
    return _outcome(state, f"Deleted task {args[0]}.")


async def cmd_start(state: AppState, args: list[str]) -> str:
    if msg := _require_login(state):
        return msg
    user = state.auth.current_user
    if len(args) != 1 or user is None:
        return "Usage: /start <task_id>"
    task = await state.provider.start_task(args[0], user.id)
    if task is None:
        return _outcome(state, "Only pending tasks can be started.")
    return _outcome(state, f"Started [{task.id}] {task.title}.")


async def cmd_complete(state: AppState, args: list[str]) -> str:
    if msg := _require_login(state):
        return msg
    user = state.auth.current_user
    if len(args) != 1 or user is None:
        return "Usage: /complete <task_id>"
    task = await state.provider.complete_task(args[0], user.id)
    if task is None:
        return _outcome(state, "Only in-progress tasks can be completed.")
    return _outcome(state, f"Completed [{task.id}] {task.title}.")


async def cmd_assign(state: AppState, args: list[str]) -> str:
    if msg := _require_login(state):
        return msg
    if len(args) != 2:
        return "Usage: /assign <task_id> <user_id|username>"
    target = next((u for u in state.auth.users if args[1] in (u.id, u.username)), None)
    if target is None:
        return f"Unknown user {args[1]!r}."
    task = await state.provider.assign_task(args[0], target.id)
    if task is None:
        return _outcome(state, "Task was not assigned.")
    return _outcome(state, f"Assigned [{task.id}] {task.title} to {target.display_name}.")


def cmd_stats(state: AppState, args: list[str]) -> str:
    if msg := _require_login(state):
        return msg
    user = state.auth.current_user
    projects, tasks = state.provider.projects, state.provider.tasks
    s = task_stats(tasks)
    o = overall_analytics(tasks)
    lines = [
        f"Tasks: {s.total} total, {s.pending} pending, {s.in_progress} in progress, {s.completed} completed",
        f"This week: {o.tasks_this_week} created, {o.completed_this_week} completed; "
        f"this month: {o.tasks_this_month} created",
        f"Open high priority: {o.open_high_priority}; overdue: {o.overdue}",
    ]
    if user is not None:
        p = personal_stats(projects, tasks, user.id)
        lines.append(
            f"You: {p.projects_created} project(s) and {p.tasks_created} task(s) created, "
            f"{p.tasks_started} started, {p.tasks_completed} completed"
        )
    return "\n".join(lines)


async def cmd_refresh(state: AppState, args: list[str]) -> str:
    if msg := _require_login(state):
        return msg
    await state.provider.refresh()
    return _outcome(state, "Reloaded.")


registry.register("help", cmd_help, "Show this help", aliases=["h", "?"])
registry.register("login", cmd_login, "Log in: /login <username> <password>")
registry.register("logout", cmd_logout, "Log out and clear the session")
registry.register("whoami", cmd_whoami, "Show the logged-in user")
registry.register("rename", cmd_rename, "Change your display name: /rename <display name>")
registry.register("projects", cmd_projects, "List projects with progress", aliases=["p"])
registry.register("tasks", cmd_tasks, "List tasks: /tasks [pending|in-progress|completed]", aliases=["t"])
registry.register("add-project", cmd_add_project, "Create a project: /add-project <name> [description] [status]")
registry.register("project-status", cmd_project_status, "Change a project's status")
registry.register("delete-project", cmd_delete_project, "Delete a project and all its tasks")
registry.register("add-task", cmd_add_task, "Create a task: /add-task <project_id> <title> [priority] [due]")
registry.register("delete-task", cmd_delete_task, "Delete a task")
registry.register("start", cmd_start, "Start a pending task")
registry.register("complete", cmd_complete, "Complete an in-progress task")
registry.register("assign", cmd_assign, "Assign a task: /assign <task_id> <user>")
registry.register("stats", cmd_stats, "Show task statistics")
registry.register("refresh", cmd_refresh, "Reload projects and tasks")
