"""Terminal prompts (prompt_toolkit-based) for answering pending decisions.

Kept apart from the workflow so the prompts can be driven in tests through a
pipe input. ``select_category_or_create`` returns either an existing category
name or a :class:`CreateCategoryRequest`; ``prompt_new_category_name``
collects and validates a name for a new category.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence

from prompt_toolkit import PromptSession
from prompt_toolkit.auto_suggest import AutoSuggest, Suggestion
from prompt_toolkit.completion import WordCompleter
from prompt_toolkit.key_binding import KeyBindings
from prompt_toolkit.styles import Style
from prompt_toolkit.validation import ValidationError, Validator

from .categories import validate_name as _validate_name
from .models import CategorySuggestion

CREATE_SENTINEL = "+ Create new category..."
_CREATE_HINT_PREFIX = "  [Create "


class CreateCategoryRequest:
    """The user asked for a category that does not exist yet."""

    __slots__ = ("name",)

    def __init__(self, name: str) -> None:
        self.name = name

    def __repr__(self) -> str:  # pragma: no cover - trivial repr
        return f"CreateCategoryRequest(name={self.name!r})"


def format_suggestions(suggestions: Iterable[CategorySuggestion]) -> list[str]:
    """One display line per suggestion, e.g. ``"Groceries  86%  Exact merchant match"``."""

    return [
        f"{s.category_name}  {round(s.confidence * 100):d}%  {s.reason}" for s in suggestions
    ]


class _PrefixOrCreate(AutoSuggest):
    """Grey inline completion of a known name, or a hint that Enter will create one."""

    def __init__(self, vocab: Sequence[str], allow_create: bool) -> None:
        self._vocab = list(vocab)
        self._allow_create = allow_create

    def get_suggestion(self, buffer, document):
        text = document.text
        if not text:
            return None
        lower = text.lower()
        if any(w.lower() == lower for w in self._vocab):
            return None
        for w in self._vocab:
            if w.lower().startswith(lower):
                return Suggestion(w[len(text) :]) if len(w) > len(text) else None
        if self._allow_create:
            return Suggestion(f"{_CREATE_HINT_PREFIX}'{text}'?]")
        return None


def _session_like(session: PromptSession | None, kb: KeyBindings) -> PromptSession:
    if session is None:
        return PromptSession(key_bindings=kb)
    return PromptSession(
        input=getattr(session, "input", None),
        output=getattr(session, "output", None),
        key_bindings=kb,
    )


def select_category_or_create(
    categories: Sequence[str] | Iterable[str],
    *,
    default: str = "",
    message: str = "Category (Enter to accept): ",
    session: PromptSession | None = None,
    allow_create: bool = True,
) -> str | CreateCategoryRequest:
    """Prompt for one of ``categories``, prefilled with ``default``.

    Tab completes the greyed prefix suggestion (or opens the completion menu),
    Down opens/advances the menu, Enter accepts the highlighted completion or
    the visible suggestion. With ``allow_create`` any unknown name, or the
    explicit create option, yields a :class:`CreateCategoryRequest`.
    """

    names = list(categories)
    words = names + [CREATE_SENTINEL] if allow_create else list(names)
    canonical = {n.lower(): n for n in names}

    def _prefix_completion(text: str) -> str | None:
        if not text:
            return None
        lower = text.lower()
        for w in names:
            wl = w.lower()
            if wl == lower:
                return None
            if wl.startswith(lower):
                return w[len(text) :]
        return None

    def _visible_suggestion(buffer) -> str | None:
        s = getattr(buffer, "suggestion", None)
        text = getattr(s, "text", None)
        if text and text.startswith(_CREATE_HINT_PREFIX):
            return None
        return text or _prefix_completion(buffer.document.text)

    kb = KeyBindings()

    def _open_or_advance_menu(buffer) -> None:
        if buffer.complete_state is None:
            buffer.start_completion(select_first=True)
        else:
            buffer.complete_next()

    @kb.add("down", eager=True)
    def _(event) -> None:  # pragma: no cover - integration path
        _open_or_advance_menu(event.app.current_buffer)

    @kb.add("tab", eager=True)
    def _(event) -> None:  # pragma: no cover - exercised via pipe input
        b = event.app.current_buffer
        completion = _visible_suggestion(b)
        if completion:
            b.insert_text(completion)
        else:
            _open_or_advance_menu(b)

    @kb.add("enter", eager=True)
    def _(event) -> None:  # pragma: no cover - exercised via pipe input
        b = event.app.current_buffer
        cs = b.complete_state
        if cs is not None and cs.current_completion is not None:
            b.apply_completion(cs.current_completion)
        else:
            completion = _visible_suggestion(b)
            if completion:
                b.insert_text(completion)
        b.validate_and_handle()

    sess = _session_like(session, kb)
    result = sess.prompt(
        message,
        default=default or "",
        completer=WordCompleter(words, ignore_case=True, match_middle=True, sentence=True),
        auto_suggest=_PrefixOrCreate(names, allow_create),
        key_bindings=kb,
        style=Style.from_dict({"auto-suggestion": "fg:#888888"}),
    )

    result = result.strip() or default
    if allow_create:
        if result == CREATE_SENTINEL:
            return CreateCategoryRequest("")
        if result.lower() not in canonical:
            return CreateCategoryRequest(result)
    return canonical.get(result.lower(), result)


def prompt_new_category_name(
    *,
    initial: str = "",
    session: PromptSession | None = None,
    message: str = "New category name (Enter to save, Esc to cancel): ",
) -> str | None:
    """Collect a new category name with inline validation; ``None`` on Esc/Ctrl+C."""

    kb = KeyBindings()

    @kb.add("escape", eager=True)
    def _(event) -> None:  # pragma: no cover - exercised indirectly
        event.app.exit(result=None)

    @kb.add("c-c", eager=True)
    def _(event) -> None:  # pragma: no cover - exercised indirectly
        event.app.exit(result=None)

    class _NameValidator(Validator):
        def validate(self, document) -> None:
            v = _validate_name(document.text)
            if not v.ok:
                raise ValidationError(message=v.reason or "Invalid name")

    sess = _session_like(session, kb)
    return sess.prompt(
        message,
        default=initial,
        validator=_NameValidator(),
        validate_while_typing=False,
        key_bindings=kb,
    )


__all__ = [
    "select_category_or_create",
    "prompt_new_category_name",
    "format_suggestions",
    "CreateCategoryRequest",
    "CREATE_SENTINEL",
]
