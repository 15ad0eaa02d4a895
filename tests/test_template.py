import pytest

from routedns.template import Template, TemplateInput


def data():
    return TemplateInput(id=7, question="www.example.com.", question_class="IN", question_type="A")


def test_plain_text_unchanged():
    assert Template("no placeholders").apply(data()) == "no placeholders"


def test_field_substitution():
    out = Template("{{ .Question }} {{ .QuestionClass }} {{ .QuestionType }}").apply(data())
    assert out == "www.example.com. IN A"


def test_id_field():
    assert Template("{{.ID}}").apply(data()) == "7"


def test_replace_all_function():
    out = Template('{{ replaceAll .Question "example" "test" }}').apply(data())
    assert out == "www.test.com."


def test_pipeline_and_parens():
    t = Template('{{ .Question | trimSuffix "." | trimPrefix "www." }}')
    assert t.apply(data()) == "example.com"
    t2 = Template('{{ join (split .Question ".") "-" }}')
    assert t2.apply(data()) == "www-example-com-"


def test_trim_markers_and_comment():
    t = Template("a  {{- .QuestionType -}}  b{{/* note */}}")
    assert t.apply(data()) == "aAb"


def test_parse_errors():
    with pytest.raises(ValueError):
        Template("{{ .Question ")
    with pytest.raises(ValueError):
        Template("{{ nosuchfunc .Question }}")


def test_unknown_field_error():
    with pytest.raises(ValueError):
        Template("{{ .Missing }}").apply(data())