# tests/conftest.py

import copy
import json
import os
import tempfile

# keep the module-level app away from the working tree
os.environ.setdefault(
    "FLOWGUARD_DB_PATH", os.path.join(tempfile.mkdtemp(prefix="flowguard-"), "flowguard.db")
)

import pytest
from fastapi.testclient import TestClient

from flowguard.api.main import create_app
from flowguard.core.store import SQLiteStore

SAMPLE_GRAPH = {
    "name": "Webhook to Slack",
    "nodes": [
        {
            "id": "0f5f3a8e-1",
            "name": "Webhook",
            "type": "n8n-nodes-base.webhook",
            "typeVersion": 1,
            "position": [100, 300],
            "parameters": {"path": "incoming", "httpMethod": "POST"},
        },
        {
            "id": "0f5f3a8e-2",
            "name": "Slack",
            "type": "n8n-nodes-base.slack",
            "typeVersion": 2.1,
            "position": [300, 300],
            "parameters": {"channel": "#alerts", "text": "={{ $json.body.message }}"},
            "credentials": {"slackApi": {"id": "7", "name": "Slack account"}},
        },
    ],
    "connections": {
        "Webhook": {"main": [[{"node": "Slack", "type": "main", "index": 0}]]},
    },
    "settings": {"timezone": "UTC", "saveManualExecutions": True},
}


@pytest.fixture
def graph_dict():
    return copy.deepcopy(SAMPLE_GRAPH)


@pytest.fixture
def graph_json(graph_dict):
    return json.dumps(graph_dict)


@pytest.fixture
def app(tmp_path):
    return create_app(tmp_path / "flowguard.db")


@pytest.fixture
def client(app):
    return TestClient(app)


@pytest.fixture
def coordinator(app):
    return app.state.coordinator


@pytest.fixture
def store(tmp_path):
    return SQLiteStore(tmp_path / "store.db")
