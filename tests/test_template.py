"""Tests for the template tokenizer, parser and renderer."""

import sys

import pytest

from dotplate.lib.arrays import ArrayRegistry
from dotplate.lib.template import (
    Conditional,
    Loop,
    Renderer,
    Scalar,
    Text,
    evaluate_condition,
    find_unresolved,
    parse,
    render,
    tokenize,
)


SSH_SCHEMA = ["name", "hostname", "user", "identity", "extra"]


def ssh_registry(*records):
    return ArrayRegistry(
        arrays={"ssh_hosts": list(records)}, schemas={"ssh_hosts": SSH_SCHEMA}
    )


# =============================================================================
# Scalars
# =============================================================================


class TestScalarSubstitution:
    def test_both_spacing_forms(self):
        result = render(
            "Hello {{ user }}, OS: {{os}}", {"user": "alice", "os": "macos"}
        )
        assert result.text == "Hello alice, OS: macos"
        assert result.unresolved == []

    def test_names_are_case_insensitive(self):
        assert render("{{ USER }}", {"user": "alice"}).text == "alice"

    def test_empty_value_substitutes(self):
        assert render("[{{ editor }}]", {"editor": ""}).text == "[]"

    def test_special_characters_are_inserted_literally(self):
        value = r"a\b/c&d\1$0"
        assert render("x={{ v }}", {"v": value}).text == f"x={value}"

    def test_values_are_not_re_expanded(self):
        result = render("{{ a }}", {"a": "{{ b }}", "b": "no"})
        assert result.text == "{{ b }}"

    def test_text_without_tags_is_unchanged(self):
        doc = "plain text\nwith { single } braces\n"
        assert render(doc, {}).text == doc


class TestUnresolved:
    def test_unknown_variable_left_verbatim(self):
        result = render("{{unknown_var}}", {})
        assert result.text == "{{unknown_var}}"
        assert result.unresolved == ["unknown_var"]

    def test_spacing_preserved_for_unknown(self):
        result = render("a {{ missing }} b", {"x": "1"})
        assert result.text == "a {{ missing }} b"
        assert result.unresolved == ["missing"]

    def test_unresolved_names_are_unique_and_sorted(self):
        result = render("{{ b }}{{a}}{{ b }}", {})
        assert result.unresolved == ["a", "b"]

    def test_find_unresolved(self):
        assert find_unresolved("x {{ y }} {{/if}}") == ["/if", "y"]


# =============================================================================
# Conditionals
# =============================================================================


class TestConditionals:
    DOC = '{{#if os == "macos"}}mac{{#else}}other{{/if}}'

    def test_if_else_true(self):
        assert render(self.DOC, {"os": "macos"}).text == "mac"

    def test_if_else_false(self):
        assert render(self.DOC, {"os": "linux"}).text == "other"

    def test_if_without_else_false_is_empty(self):
        assert render("a{{#if x}}b{{/if}}c", {}).text == "ac"

    def test_single_quotes(self):
        doc = "{{#if os == 'macos'}}mac{{/if}}"
        assert render(doc, {"os": "macos"}).text == "mac"

    def test_not_equal(self):
        doc = '{{#if os != "macos"}}not mac{{/if}}'
        assert render(doc, {"os": "linux"}).text == "not mac"
        assert render(doc, {"os": "macos"}).text == ""

    def test_truthy(self):
        doc = "{{#if enable_nvm}}nvm{{/if}}"
        assert render(doc, {"enable_nvm": "true"}).text == "nvm"
        assert render(doc, {"enable_nvm": "yes"}).text == "nvm"
        assert render(doc, {"enable_nvm": "false"}).text == ""
        assert render(doc, {"enable_nvm": "0"}).text == ""
        assert render(doc, {"enable_nvm": ""}).text == ""
        assert render(doc, {}).text == ""

    def test_substitution_inside_selected_branch(self):
        doc = "{{#if git_email}}email = {{ git_email }}{{/if}}"
        assert render(doc, {"git_email": "a@b.c"}).text == "email = a@b.c"

    def test_multiline_blocks(self):
        doc = "[core]\n{{#if editor}}\teditor = {{ editor }}\n{{/if}}[user]\n"
        assert render(doc, {"editor": "nvim"}).text == (
            "[core]\n\teditor = nvim\n[user]\n"
        )


class TestNestedConditionals:
    DOC = "{{#if outer}}A{{#if inner}}B{{#else}}C{{/if}}D{{#else}}E{{/if}}"

    def test_both_true(self):
        assert render(self.DOC, {"outer": "1", "inner": "1"}).text == "ABD"

    def test_inner_false(self):
        assert render(self.DOC, {"outer": "1"}).text == "ACD"

    def test_outer_false_ignores_inner_else(self):
        assert render(self.DOC, {"inner": "1"}).text == "E"

    def test_inner_else_is_not_outer_else(self):
        doc = "{{#if a}}{{#if b}}1{{#else}}2{{/if}}{{/if}}"
        assert render(doc, {}).text == ""
        assert render(doc, {"a": "1"}).text == "2"

    def test_nested_in_false_branch(self):
        doc = "{{#if a}}x{{#else}}{{#if b}}y{{#else}}z{{/if}}{{/if}}"
        assert render(doc, {"b": "1"}).text == "y"
        assert render(doc, {}).text == "z"

    def test_deep_nesting(self):
        depth = 50
        doc = "{{#if a}}" * depth + "deep" + "{{/if}}" * depth
        assert render(doc, {"a": "true"}).text == "deep"
        assert render(doc, {}).text == ""

    def test_unless_inside_if(self):
        doc = "{{#if a}}{{#unless b}}x{{/unless}}{{/if}}"
        assert render(doc, {"a": "1"}).text == "x"
        assert render(doc, {"a": "1", "b": "1"}).text == ""


class TestUnless:
    def test_unless_false_condition_keeps_body(self):
        doc = "{{#unless debug}}quiet{{/unless}}"
        assert render(doc, {"debug": ""}).text == "quiet"
        assert render(doc, {"debug": "true"}).text == ""

    def test_unless_with_comparison(self):
        doc = '{{#unless os == "macos"}}not mac{{/unless}}'
        assert render(doc, {"os": "linux"}).text == "not mac"
        assert render(doc, {"os": "macos"}).text == ""

    def test_else_inside_unless_is_literal(self):
        result = render("{{#unless x}}a{{#else}}b{{/unless}}", {})
        assert result.text == "a{{#else}}b"


# =============================================================================
# Loops
# =============================================================================


class TestLoops:
    def test_ssh_hosts(self):
        registry = ssh_registry("github|github.com|git|~/.ssh/id|")
        doc = "{{#each ssh_hosts}}Host {{name}} -> {{hostname}}{{/each}}"
        assert render(doc, {}, registry).text == "Host github -> github.com"

    def test_zero_records(self):
        doc = "a{{#each ssh_hosts}}Host {{name}}{{/each}}b"
        result = render(doc, {}, ssh_registry())
        assert result.text == "ab"
        assert result.unresolved == []

    def test_unknown_array_is_empty(self):
        assert render("{{#each nope}}x{{/each}}", {}).text == ""

    def test_multiple_records(self):
        registry = ssh_registry(
            "github|github.com|git|~/.ssh/gh|", "work|srv.corp|deploy|~/.ssh/w|"
        )
        doc = "{{#each ssh_hosts}}{{name}}={{user}};{{/each}}"
        assert render(doc, {}, registry).text == "github=git;work=deploy;"

    def test_missing_trailing_fields_are_empty(self):
        registry = ssh_registry("short|host")
        doc = "{{#each ssh_hosts}}[{{user}}][{{extra}}]{{/each}}"
        assert render(doc, {}, registry).text == "[][]"

    def test_loop_extras(self):
        registry = ssh_registry("a|1", "b|2", "c|3")
        doc = "{{#each ssh_hosts}}{{@index}}:{{this}}:{{@first}}:{{@last}} {{/each}}"
        assert render(doc, {}, registry).text == (
            "0:a|1:true: 1:b|2:: 2:c|3::true "
        )

    def test_default_schema(self):
        registry = ArrayRegistry(arrays={"hosts": ["gh|github.com|git"]})
        doc = "{{#each hosts}}{{hostname}} as {{user}}{{/each}}"
        assert render(doc, {}, registry).text == "github.com as git"

    def test_mapping_records(self):
        registry = ArrayRegistry(
            arrays={"profiles": [{"name": "dev", "region": "eu-west-1"}]},
            schemas={"profiles": ["name", "region"]},
        )
        doc = "{{#each profiles}}[{{name}}] {{region}}{{/each}}"
        assert render(doc, {}, registry).text == "[dev] eu-west-1"

    def test_fields_do_not_leak_out_of_loop(self):
        registry = ssh_registry("github|github.com")
        result = render("{{#each ssh_hosts}}{{name}}{{/each}} {{name}}", {}, registry)
        assert result.text == "github {{name}}"
        assert result.unresolved == ["name"]

    def test_fields_shadow_variables_inside_loop(self):
        registry = ssh_registry("github|github.com")
        doc = "{{name}}:{{#each ssh_hosts}}{{name}}{{/each}}"
        assert render(doc, {"name": "global"}, registry).text == "global:github"

    def test_variables_visible_inside_loop(self):
        registry = ssh_registry("github|github.com")
        doc = "{{#each ssh_hosts}}{{name}}@{{ home }}{{/each}}"
        assert render(doc, {"home": "/h"}, registry).text == "github@/h"

    def test_conditions_inside_loop_use_variables(self):
        registry = ssh_registry("a|1", "b|2")
        doc = "{{#each ssh_hosts}}{{#if verbose}}{{name}}{{#else}}-{{/if}}{{/each}}"
        assert render(doc, {"verbose": "1"}, registry).text == "ab"
        assert render(doc, {}, registry).text == "--"

    def test_nested_each_is_left_literal(self):
        registry = ArrayRegistry(arrays={"a": ["r"], "b": ["s"]})
        result = render("{{#each a}}[{{#each b}}x{{/each}}]{{/each}}", {}, registry)
        assert result.text == "[{{#each b}}x]{{/each}}"
        assert any("nested {{#each}}" in w for w in result.warnings)
        assert result.unresolved == ["#each b", "/each"]

    def test_renders_do_not_share_loop_scope(self):
        renderer = Renderer({}, ssh_registry("github|github.com"))
        renderer.render("{{#each ssh_hosts}}{{name}}{{/each}}")
        assert renderer.render("{{name}}").text == "{{name}}"


# =============================================================================
# Malformed input and safety limits
# =============================================================================


class TestMalformed:
    def test_unterminated_if_is_literal(self):
        result = render("{{#if a}}text", {"a": "1"})
        assert result.text == "{{#if a}}text"

    def test_orphan_close_is_literal(self):
        assert render("x{{/if}}y", {}).text == "x{{/if}}y"

    def test_unclosed_tag_is_literal(self):
        assert render("a {{ foo", {"foo": "bar"}).text == "a {{ foo"

    def test_unterminated_inner_block_inside_closed_outer(self):
        doc = "{{#if a}}{{#unless b}}x{{/if}}"
        assert render(doc, {"a": "1"}).text == "{{#unless b}}x"

    def test_if_without_condition_is_literal(self):
        assert render("{{#if }}x", {}).text == "{{#if }}x"


class TestSafetyLimits:
    def test_conditional_limit(self):
        doc = "{{#if a}}1{{/if}}{{#if a}}2{{/if}}{{#if a}}3{{/if}}"
        result = Renderer({"a": "1"}, max_blocks=2).render(doc)
        assert result.text == "12{{#if a}}3{{/if}}"
        assert any("conditional limit (2)" in w for w in result.warnings)

    def test_loop_limit(self):
        registry = ArrayRegistry(arrays={"xs": ["a", "b"]})
        doc = "{{#each xs}}{{this}}{{/each}}|{{#each xs}}{{this}}{{/each}}"
        result = Renderer({}, registry, max_blocks=1).render(doc)
        assert result.text == "ab|{{#each xs}}{{this}}{{/each}}"
        assert any("loop expansion limit" in w for w in result.warnings)

    def test_nesting_deeper_than_recursion_limit(self):
        depth = sys.getrecursionlimit() + 500
        doc = "{{#if a}}" * depth + "deep" + "{{/if}}" * depth
        result = Renderer({"a": "1"}, max_blocks=depth).render(doc)
        assert result.text == "deep"
        assert result.warnings == []

    def test_loop_inside_deep_conditionals(self):
        registry = ArrayRegistry(arrays={"xs": ["a", "b"]})
        doc = "{{#if a}}" * 5 + "{{#each xs}}{{this}}{{/each}}" + "{{/if}}" * 5 + "!"
        assert Renderer({"a": "1"}, registry).render(doc).text == "ab!"


class TestIdempotence:
    def test_same_inputs_same_output(self):
        registry = ssh_registry("github|github.com|git|~/.ssh/id|")
        doc = (
            "{{#if os == 'linux'}}L{{#else}}O{{/if}} {{ user }}\n"
            "{{#each ssh_hosts}}Host {{name}}\n{{/each}}{{missing}}"
        )
        variables = {"os": "linux", "user": "alice"}
        first = render(doc, variables, registry)
        second = render(doc, variables, registry)
        assert first == second


# =============================================================================
# Condition evaluation and parsing
# =============================================================================


class TestEvaluateCondition:
    @pytest.mark.parametrize(
        "condition,expected",
        [
            ('os == "macos"', True),
            ("os=='macos'", True),
            ('os == "linux"', False),
            ('os != "linux"', True),
            ('missing == ""', True),
            ('missing != "x"', True),
            ("os", True),
            ("missing", False),
            ("zero", False),
            ("no", False),
            ("  os  ", True),
        ],
    )
    def test_forms(self, condition, expected):
        variables = {"os": "macos", "zero": "0", "no": "false"}
        assert evaluate_condition(condition, variables) is expected

    def test_truthy_ignores_punctuation(self):
        assert evaluate_condition("(enabled)", {"enabled": "1"}) is True


class TestParser:
    def test_tokenize_kinds(self):
        kinds = [t.kind for t in tokenize("a{{#if x}}{{ y }}{{#else}}{{/if}}")]
        assert kinds == ["text", "if", "var", "else", "/if"]

    def test_tree_shape(self):
        template = parse("{{#if x}}a{{#else}}{{ b }}{{/if}}{{#each hs}}c{{/each}}")
        cond, loop = template.nodes
        assert isinstance(cond, Conditional)
        assert cond.condition == "x"
        assert cond.true_branch == [Text("a")]
        assert cond.false_branch == [Scalar("b", "{{ b }}")]
        assert cond.source == "{{#if x}}a{{#else}}{{ b }}{{/if}}"
        assert isinstance(loop, Loop)
        assert loop.array == "hs"
        assert loop.body == [Text("c")]

    def test_unless_is_negated(self):
        (node,) = parse("{{#unless x}}a{{/unless}}").nodes
        assert isinstance(node, Conditional)
        assert node.negate is True
