from livesite.stream.directives import DirectiveKind, TagParser, strip_directives


def _collect(text, parser=None, final=False):
    found = []
    result = (parser or TagParser()).parse(text, found.append, final=final)
    return result, found


def test_parses_inline_bare_and_block_directives():
    text = "[NEW_PAGE: about]<p>Hi</p>[END_PAGE][ACTION]checked links[END_ACTION]"
    result, found = _collect(text)

    assert result.text == "<p>Hi</p>"
    assert result.pending == ""
    assert [d.kind for d in found] == [DirectiveKind.NEW_PAGE, DirectiveKind.END_PAGE, DirectiveKind.ACTION]
    assert found[0].payload == "about"
    assert found[2].payload == "checked links"
    assert text[found[0].start:found[0].end] == "[NEW_PAGE: about]"


def test_incomplete_directive_is_held_back_as_pending():
    result, found = _collect("<p>one</p>[NEW_PA")
    assert result.text == "<p>one</p>"
    assert result.pending == "[NEW_PA"
    assert found == []

    result, found = _collect("<p>one</p>[NEW_PAGE: ab")
    assert result.pending == "[NEW_PAGE: ab"

    result, found = _collect("text [")
    assert result.text == "text "
    assert result.pending == "["


def test_bracket_text_that_is_not_a_directive_stays_literal():
    for text in ("arr[0] = [1, 2]", "[TODO] fix", "[link](x)", "[FOO: bar]", "[E] end"):
        result, found = _collect(text)
        assert result.text == text
        assert result.pending == ""
        assert found == []


def test_prefix_of_end_token_is_pending_until_final():
    result, _ = _collect("abc [E")
    assert result.pending == "[E"

    result, _ = _collect("abc [E", final=True)
    assert result.text == "abc [E"
    assert result.pending == ""


def test_newline_inside_inline_payload_makes_it_literal():
    result, found = _collect("[ACTION: first\nsecond]")
    assert found == []
    assert result.text == "[ACTION: first\nsecond]"


def test_directive_longer_than_window_is_literal():
    parser = TagParser(max_pending=16)
    text = "[ACTION: " + "x" * 40
    result, found = _collect(text, parser=parser)

    assert found == []
    assert result.pending == ""
    assert result.text == text


def test_minimum_window_is_enforced():
    assert TagParser(max_pending=1).max_pending == 16


def test_final_flushes_pending_text():
    result, found = _collect("<p>x</p>[NEW_PAGE: half", final=True)
    assert found == []
    assert result.text == "<p>x</p>[NEW_PAGE: half"
    assert result.pending == ""


def test_split_directive_parses_the_same_when_carried_over():
    parser = TagParser()
    found = []
    first = parser.parse("<h1>a</h1>[NEW_PAGE: con", found.append)
    second = parser.parse(first.pending + "tact]<p>b</p>", found.append)

    assert first.text + second.text == "<h1>a</h1><p>b</p>"
    assert [d.payload for d in found] == ["contact"]


def test_strip_directives_reports_and_removes():
    actions = []
    text = strip_directives(
        "<p>a</p>[ACTION: one][ACTION: two]<p>b</p>",
        lambda directive: actions.append(directive.payload),
    )
    assert text == "<p>a</p><p>b</p>"
    assert actions == ["one", "two"]


def test_stripping_is_idempotent():
    samples = [
        "[NEW_PAGE: a]<p>x</p>[END_PAGE][ACTION: done]",
        "arr[0] [NEW_PAGE: b][E [ACTION]open",
        "[[NEW_PAGE: c]]",
        "plain text",
    ]
    for sample in samples:
        once = strip_directives(sample)
        assert strip_directives(once) == once
