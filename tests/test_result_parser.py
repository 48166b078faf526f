from conftest import SOUTH_TOKENS, render_page

from xoso.result_parser import MIN_UNIQUE_NUMBERS, assign_prizes, extract_numeric_tokens, parse_result_html


def _five_digit_tokens(n):
    return [f"{10000 + i * 111:05d}" for i in range(n)]


def test_parser_floor():
    assert MIN_UNIQUE_NUMBERS == 15
    assert parse_result_html(render_page(_five_digit_tokens(14)), "21-10-2024", "south") == {}
    assert parse_result_html(render_page(_five_digit_tokens(15)), "21-10-2024", "south") != {}


def test_duplicates_do_not_count_toward_floor():
    tokens = _five_digit_tokens(14) + _five_digit_tokens(3)
    assert parse_result_html(render_page(tokens), "21-10-2024", "south") == {}


def test_south_page_is_dealt_tier_by_tier():
    results = parse_result_html(render_page(SOUTH_TOKENS), "21-10-2024", "south")

    assert list(results) == ["mien-nam"]
    result = results["mien-nam"]
    assert result.name == "Miền Nam"
    assert result.region == "south"
    assert result.date == "21-10-2024"
    assert result.prizes["Special"] == ["889246"]
    assert result.prizes["Tier1"] == ["12345"]
    assert result.prizes["Tier2"] == ["23456"]
    assert result.prizes["Tier3"] == ["34567", "45678"]
    assert result.prizes["Tier4"] == ["56789", "67890", "78901", "89012", "90123", "01234", "11223"]
    assert result.prizes["Tier5"] == ["1234"]
    assert result.prizes["Tier6"] == ["2345", "3456", "4567"]
    assert result.prizes["Tier7"] == ["357"]
    assert result.prizes["Tier8"] == ["42"]


def test_special_borrows_first_five_digit_token():
    tokens = _five_digit_tokens(15)
    prizes = assign_prizes(tokens, "south")

    assert prizes["Special"] == [tokens[0]]
    # borrowed, not consumed
    assert prizes["Tier1"] == [tokens[0]]
    assert prizes["Tier2"] == [tokens[1]]


def test_north_structure_consumes_five_digit_special():
    tokens = _five_digit_tokens(15)
    prizes = assign_prizes(tokens, "north")

    assert prizes["Special"] == [tokens[0]]
    assert prizes["Tier1"] == [tokens[1]]
    assert prizes["Tier2"] == tokens[2:4]
    assert prizes["Tier3"] == tokens[4:10]
    assert prizes["Tier4"] == []


def test_only_bare_numeric_text_nodes_are_tokens():
    html = (
        "<html><head><script>123456</script><style>654321</style></head>"
        "<body><!-- 777777 --><p>Giải 12345</p><span> 98765 </span><b>7</b><i>1234567</i></body></html>"
    )
    assert extract_numeric_tokens(html) == ["98765"]


def test_unparseable_input_yields_empty():
    assert parse_result_html("", "21-10-2024") == {}
    assert parse_result_html("<html>Chưa có kết quả</html>", "21-10-2024", "north") == {}
