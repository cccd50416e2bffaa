import logging
import uuid

from sqlmodel import select

from prscore.db.models import ChangeComponent, ChangedFile, ComponentRule, ProductComponent
from prscore.services.evaluation.classifier import (
    classify_files,
    glob_to_regex,
    matches_rule,
    replace_change_components,
)

from factories import add_change, seed_org

ORG_ID = uuid.uuid4()


def _component(key: str, sort_order: int = 0) -> ProductComponent:
    return ProductComponent(org_id=ORG_ID, key=key, name=key.title(), sort_order=sort_order)


def _rule(component: ProductComponent, match_type: str, pattern: str, priority: int = 0, rule_id: int = 1) -> ComponentRule:
    return ComponentRule(
        id=rule_id,
        component_id=component.id,
        match_type=match_type,
        pattern=pattern,
        priority=priority,
    )


def _file(path: str, additions: int = 0, deletions: int = 0) -> ChangedFile:
    return ChangedFile(change_id=uuid.uuid4(), path=path, additions=additions, deletions=deletions)


def test_auth_and_ui_files_pick_auth_by_line_delta() -> None:
    auth, ui, other = _component("AUTH"), _component("UI", 1), _component("OTHER", 999)
    rules = [_rule(auth, "prefix", "src/auth/", rule_id=1), _rule(ui, "prefix", "src/ui/", rule_id=2)]
    files = [_file("src/auth/login.py", 40, 5), _file("src/ui/button.tsx", 2, 1)]

    result = classify_files(files, [auth, ui, other], rules, other)

    by_key = {m.component_key: m for m in result.matches}
    assert set(by_key) == {"AUTH", "UI"}
    assert by_key["AUTH"].lines_changed == 45
    assert by_key["UI"].lines_changed == 3
    assert result.primary.component_key == "AUTH"
    assert sum(1 for m in result.matches if m.is_primary) == 1


def test_no_match_falls_back_to_other() -> None:
    auth, other = _component("AUTH"), _component("OTHER", 999)
    rules = [_rule(auth, "prefix", "src/auth/")]

    result = classify_files([_file("README.md", 3, 0)], [auth, other], rules, other)

    assert len(result.matches) == 1
    assert result.primary.component_key == "OTHER"
    assert result.primary.lines_changed == 0


def test_no_match_without_other_is_empty() -> None:
    auth = _component("AUTH")
    rules = [_rule(auth, "prefix", "src/auth/")]

    result = classify_files([_file("README.md", 3, 0)], [auth], rules, None)

    assert result.matches == []
    assert result.primary is None


def test_priority_beats_line_delta() -> None:
    core, docs = _component("CORE"), _component("DOCS", 1)
    rules = [
        _rule(core, "suffix", ".py", priority=10, rule_id=1),
        _rule(docs, "prefix", "docs/", priority=0, rule_id=2),
    ]
    files = [_file("src/app.py", 1, 0), _file("docs/guide.md", 500, 20)]

    result = classify_files(files, [core, docs], rules)

    assert result.primary.component_key == "CORE"


def test_full_tie_goes_to_catalog_order_regardless_of_file_order() -> None:
    first, second = _component("FIRST"), _component("SECOND", 1)
    rules = [_rule(first, "prefix", "src/a/", rule_id=1), _rule(second, "prefix", "src/b/", rule_id=2)]
    files = [_file("src/b/x.py", 5, 5), _file("src/a/y.py", 5, 5)]

    results = [classify_files(files, [first, second], rules) for _ in range(5)]
    results.append(classify_files(list(reversed(files)), [first, second], rules))

    assert {r.primary.component_key for r in results} == {"FIRST"}


def test_max_priority_is_kept_per_component() -> None:
    api, web = _component("API"), _component("WEB", 1)
    rules = [
        _rule(api, "prefix", "src/api/", priority=1, rule_id=1),
        _rule(api, "suffix", "_handler.py", priority=7, rule_id=2),
        _rule(web, "prefix", "src/", priority=5, rule_id=3),
    ]
    files = [_file("src/api/user_handler.py", 2, 0)]

    result = classify_files(files, [api, web], rules)

    by_key = {m.component_key: m for m in result.matches}
    assert by_key["API"].priority == 7
    # counted once per matching rule
    assert by_key["API"].lines_changed == 4
    assert result.primary.component_key == "API"


def test_null_line_counts_are_zero() -> None:
    auth = _component("AUTH")
    rules = [_rule(auth, "prefix", "src/auth/")]
    files = [ChangedFile(change_id=uuid.uuid4(), path="src/auth/a.py", additions=None, deletions=None)]

    result = classify_files(files, [auth], rules)

    assert result.primary.lines_changed == 0


def test_invalid_regex_never_matches_and_warns(caplog) -> None:
    broken, ok = _component("BROKEN"), _component("OK", 1)
    rules = [_rule(broken, "regex", "src/([", rule_id=1), _rule(ok, "regex", r"^src/.*\.py$", rule_id=2)]

    with caplog.at_level(logging.WARNING):
        result = classify_files([_file("src/([x.py", 1, 1)], [broken, ok], rules)

    assert [m.component_key for m in result.matches] == ["OK"]
    assert "Invalid rule regex" in caplog.text


def test_glob_escapes_everything_but_star() -> None:
    assert glob_to_regex("src/*.py") == r"^src/.*\.py$"

    component = _component("PY")
    rule = _rule(component, "glob", "src/*.py")
    assert matches_rule("src/app.py", rule)
    assert matches_rule("src/pkg/mod.py", rule)
    assert not matches_rule("src/app.pyc", rule)
    assert not matches_rule("lib/src/app.py", rule)
    assert not matches_rule("src/appxpy", rule)


def test_regex_is_searched_not_anchored() -> None:
    rule = _rule(_component("TESTS"), "regex", r"tests?/")
    assert matches_rule("packages/core/tests/test_a.py", rule)


def test_replace_change_components_overwrites_previous_set(run_db) -> None:
    org_id = uuid.uuid4()

    async def scenario(session_factory):
        await seed_org(session_factory, org_id)
        change = await add_change(
            session_factory,
            org_id,
            1,
            files=[("src/auth/login.py", 40, 5), ("src/ui/button.tsx", 2, 1)],
        )

        async with session_factory() as session:
            components = (await session.execute(select(ProductComponent))).scalars().all()
            rules = (await session.execute(select(ComponentRule))).scalars().all()
            files = (
                await session.execute(select(ChangedFile).order_by(ChangedFile.path))
            ).scalars().all()
        other = next(c for c in components if c.key == "OTHER")

        first = classify_files(files, components, rules, other)
        second = classify_files(files[:1], components, rules, other)
        for classification in (first, second):
            async with session_factory() as session:
                async with session.begin():
                    await replace_change_components(session, change.id, classification)

        async with session_factory() as session:
            rows = (
                await session.execute(
                    select(ChangeComponent).where(ChangeComponent.change_id == change.id)
                )
            ).scalars().all()
        return rows, {c.id: c.key for c in components}

    rows, keys = run_db(scenario)

    assert len(rows) == 1
    assert keys[rows[0].component_id] == "AUTH"
    assert rows[0].is_primary
    assert rows[0].lines_changed == 45


def test_auth_priority_10_beats_ui_priority_5() -> None:
    auth, ui = _component("AUTH"), _component("UI", 1)
    rules = [
        _rule(auth, "prefix", "auth/", priority=10, rule_id=1),
        _rule(ui, "prefix", "ui/", priority=5, rule_id=2),
    ]
    files = [_file("auth/login.ts", 40, 5), _file("ui/button.tsx", 2, 1)]

    result = classify_files(files, [auth, ui], rules)

    by_key = {m.component_key: m for m in result.matches}
    assert result.primary.component_key == "AUTH"
    assert by_key["AUTH"].lines_changed == 45
    assert by_key["UI"].lines_changed == 3
    assert not by_key["UI"].is_primary


def test_equal_priority_picks_larger_line_delta() -> None:
    small, large = _component("SMALL"), _component("LARGE", 1)
    rules = [
        _rule(small, "prefix", "a/", priority=5, rule_id=1),
        _rule(large, "prefix", "b/", priority=5, rule_id=2),
    ]
    files = [_file("a/x.py", 6, 4), _file("b/y.py", 15, 5)]

    result = classify_files(files, [small, large], rules)

    assert result.primary.component_key == "LARGE"
