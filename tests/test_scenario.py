"""
Tests for mockapi Scenario Configuration

Tests YAML scenario configuration including:
- YAML loading and parsing
- Response building (json, text, file)
- Registration on a server
"""

import pytest
from fastapi.testclient import TestClient

from mockapi.common.errors import ExpectationsFailed
from mockapi.mock.expectation import ResponseFormat
from mockapi.mock.server import MockServer
from mockapi.scenario.scenario_config import (
    MockScenario,
    ScenarioExpectation,
    build_response
)


@pytest.fixture
def sample_yaml_scenario():
    """Sample YAML scenario for testing."""
    return """
name: "Widget API"
description: "Widget listing and creation"

filtered_headers: [User-Agent, Accept, Accept-Encoding, Content-Type]
filtered_query_params: [_ts]

expectations:
  - request:
      method: GET
      path: /widgets
      query:
        page: "1"
    response:
      status: 200
      json:
        count: 3
    times: 2

  - request:
      method: POST
      path: /widgets
      body:
        name: bolt
    response:
      status: 201
    maybe: true

  - request:
      method: GET
      path: /export
    response:
      status: 200
      file: export.csv
      headers:
        Content-Disposition: attachment

default:
  status: 404
  text: not here
"""


@pytest.fixture
def scenario_file(tmp_path, sample_yaml_scenario):
    """Scenario file with its response payload beside it."""
    (tmp_path / 'export.csv').write_bytes(b'id,name\n1,bolt\n')
    path = tmp_path / 'widgets.yaml'
    path.write_text(sample_yaml_scenario, encoding='utf-8')
    return path


class TestBuildResponse:
    """Test build_response helper."""

    def test_no_body(self, tmp_path):
        """Test a response without body keys."""
        action = build_response({'status': 204}, tmp_path)

        assert action.format == ResponseFormat.NONE
        assert action.status == 204

    def test_default_status(self, tmp_path):
        """Test status defaults to 200."""
        assert build_response({}, tmp_path).status == 200

    def test_json(self, tmp_path):
        """Test a JSON response."""
        action = build_response({'status': 200, 'json': [1, 2]}, tmp_path)

        assert action.format == ResponseFormat.JSON
        assert action.body == [1, 2]

    def test_text(self, tmp_path):
        """Test a text response."""
        action = build_response({'text': 'hello', 'headers': {'X-A': 'b'}}, tmp_path)

        assert action.format == ResponseFormat.STRING
        assert action.body == 'hello'
        assert action.headers == {'X-A': 'b'}

    def test_file_relative_to_base_dir(self, tmp_path):
        """Test file responses open a fresh stream each time."""
        (tmp_path / 'data.bin').write_bytes(b'abc')

        action = build_response({'file': 'data.bin'}, tmp_path)

        assert action.format == ResponseFormat.STREAM
        with action.body() as f:
            assert f.read() == b'abc'
        with action.body() as f:
            assert f.read() == b'abc'

    def test_missing_file(self, tmp_path):
        """Test a missing response file is rejected at load time."""
        with pytest.raises(FileNotFoundError):
            build_response({'file': 'nope.bin'}, tmp_path)

    def test_multiple_bodies_rejected(self, tmp_path):
        """Test only one body key is allowed."""
        with pytest.raises(ValueError):
            build_response({'json': {}, 'text': 'x'}, tmp_path)


class TestScenarioExpectation:
    """Test ScenarioExpectation dataclass."""

    def test_from_dict(self):
        """Test creating an expectation from dictionary."""
        exp = ScenarioExpectation.from_dict({
            'request': {'method': 'get', 'path': '/a', 'headers': {'X-Token': 't'}},
            'times': 3
        })

        assert exp.times == 3
        assert not exp.maybe

        fp = exp.to_mock_request().fingerprint()
        assert fp.method == 'GET'
        assert fp.headers == {'x-token': 't'}

    def test_missing_method_or_path(self):
        """Test requests need both method and path."""
        with pytest.raises(ValueError):
            ScenarioExpectation.from_dict({'request': {'path': '/a'}})
        with pytest.raises(ValueError):
            ScenarioExpectation.from_dict({})


class TestMockScenario:
    """Test MockScenario loading."""

    def test_from_yaml(self, scenario_file):
        """Test loading scenario from YAML."""
        scenario = MockScenario.from_yaml(str(scenario_file))

        assert scenario.name == 'Widget API'
        assert scenario.description == 'Widget listing and creation'
        assert scenario.filtered_query_params == ['_ts']
        assert len(scenario.expectations) == 3
        assert scenario.expectations[0].times == 2
        assert scenario.expectations[1].maybe
        assert scenario.default == {'status': 404, 'text': 'not here'}
        assert scenario.base_dir == scenario_file.parent

    def test_name_defaults_to_file_stem(self, tmp_path):
        """Test unnamed scenarios take the file name."""
        path = tmp_path / 'empty.yaml'
        path.write_text('expectations: []\n', encoding='utf-8')

        assert MockScenario.from_yaml(str(path)).name == 'empty'

    def test_missing_file(self, tmp_path):
        """Test loading a missing scenario."""
        with pytest.raises(FileNotFoundError):
            MockScenario.from_yaml(str(tmp_path / 'missing.yaml'))

    def test_non_mapping_yaml(self, tmp_path):
        """Test a YAML list is rejected."""
        path = tmp_path / 'list.yaml'
        path.write_text('- a\n- b\n', encoding='utf-8')

        with pytest.raises(ValueError):
            MockScenario.from_yaml(str(path))


class TestApplyScenario:
    """Test registering a scenario on a server."""

    def test_apply_and_serve(self, scenario_file):
        """Test every declared expectation is served and asserted."""
        server = MockServer()
        handles = MockScenario.from_yaml(str(scenario_file)).apply(server)
        client = TestClient(server.get_app())

        assert len(handles) == 3

        for _ in range(2):
            response = client.get('/widgets', params={'page': '1', '_ts': '99'})
            assert response.json() == {'count': 3}

        export = client.get('/export')
        assert export.content == b'id,name\n1,bolt\n'
        assert export.headers['content-disposition'] == 'attachment'

        fallback = client.get('/elsewhere')
        assert fallback.status_code == 404
        assert fallback.text == 'not here'

        server.assert_expectations()

    def test_apply_reports_unmet(self, scenario_file):
        """Test an uncalled scenario expectation fails assertion."""
        server = MockServer()
        MockScenario.from_yaml(str(scenario_file)).apply(server)

        with pytest.raises(ExpectationsFailed) as excinfo:
            server.assert_expectations()

        assert len(excinfo.value.errors) == 2

    def test_apply_cardinality(self, scenario_file):
        """Test times and maybe are applied to the handles."""
        server = MockServer()
        handles = MockScenario.from_yaml(str(scenario_file)).apply(server)

        assert handles[0].expectation.cardinality.limit == 2
        assert handles[1].expectation.cardinality.optional
        assert handles[2].expectation.cardinality.limit == 1


if __name__ == '__main__':
    pytest.main([__file__, '-v'])
