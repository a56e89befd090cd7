"""
Unit tests for envelope state reconciliation.
"""

from scenario_engine.reconciler import latest_revisions, reconcile_envelope_state


def _revision(event_id, hour, version, assumptions, constraints, envelope_id="ENV-001"):
    return {
        "hour": hour,
        "type": "revision",
        "eventId": event_id,
        "envelopeId": envelope_id,
        "envelope_version": version,
        "revision_id": f"rev-{event_id}",
        "nextAssumptions": assumptions,
        "nextConstraints": constraints,
    }


def _scenario(*events):
    return {
        "envelopes": [
            {"envelopeId": "ENV-001", "envelope_version": 1, "assumptions": ["a0"], "constraints": ["c0"]},
            {"envelopeId": "ENV-002", "envelope_version": 1, "assumptions": ["b0"], "constraints": ["d0"]},
        ],
        "events": list(events),
    }


class TestLatestRevisions:
    """Selection of each envelope's latest revision."""

    def test_latest_by_hour_not_position(self):
        """Test a later hour wins even when listed first."""
        late = _revision("revision:2", 44, 3, ["a2"], ["c2"])
        early = _revision("revision:1", 22, 2, ["a1"], ["c1"])

        assert latest_revisions(_scenario(late, early))["ENV-001"] is late

    def test_equal_hours_keep_log_order(self):
        """Test the later log entry wins a tie."""
        first = _revision("revision:1", 30, 2, ["a1"], ["c1"])
        second = _revision("revision:2", 30, 3, ["a2"], ["c2"])

        assert latest_revisions(_scenario(first, second))["ENV-001"] is second

    def test_ignores_non_revisions(self):
        """Test other event kinds and envelope-less revisions are skipped."""
        orphan = _revision("revision:9", 50, 9, [], [])
        orphan["envelopeId"] = None
        signal = {"hour": 60, "type": "signal", "envelopeId": "ENV-001"}

        assert latest_revisions(_scenario(signal, orphan)) == {}


class TestReconcileEnvelopeState:
    """Envelope state overwritten from the revision log."""

    def test_hour_44_wins_over_hour_22(self):
        """Test the envelope ends in the hour-44 state."""
        scenario = _scenario(
            _revision("revision:2", 44, 3, ["a44"], ["c44"]),
            _revision("revision:1", 22, 2, ["a22"], ["c22"]),
        )

        reconcile_envelope_state(scenario)
        envelope = scenario["envelopes"][0]

        assert envelope["envelope_version"] == 3
        assert envelope["assumptions"] == ["a44"]
        assert envelope["constraints"] == ["c44"]

    def test_envelope_without_revisions_untouched(self):
        """Test an envelope with no revisions keeps its state."""
        scenario = _scenario(_revision("revision:1", 22, 2, ["a22"], ["c22"]))

        reconcile_envelope_state(scenario)

        assert scenario["envelopes"][1] == {
            "envelopeId": "ENV-002", "envelope_version": 1, "assumptions": ["b0"], "constraints": ["d0"],
        }

    def test_returns_same_object(self):
        """Test the scenario is mutated in place and returned."""
        scenario = _scenario()
        assert reconcile_envelope_state(scenario) is scenario

    def test_lists_are_copied(self):
        """Test the envelope does not alias the revision's lists."""
        revision = _revision("revision:1", 22, 2, ["a22"], ["c22"])
        scenario = _scenario(revision)

        reconcile_envelope_state(scenario)
        scenario["envelopes"][0]["assumptions"].append("extra")

        assert revision["nextAssumptions"] == ["a22"]

    def test_partial_revision(self):
        """Test missing revision fields leave the envelope's values."""
        revision = _revision("revision:1", 22, None, ["a22"], None)
        scenario = _scenario(revision)

        reconcile_envelope_state(scenario)
        envelope = scenario["envelopes"][0]

        assert envelope["envelope_version"] == 1
        assert envelope["assumptions"] == ["a22"]
        assert envelope["constraints"] == ["c0"]

    def test_skeleton_reconciles_to_final_versions(self, skeleton):
        """Test skeleton envelopes end at the versions their closures announce."""
        reconcile_envelope_state(skeleton.scenario)
        versions = {e["envelopeId"]: e["envelope_version"] for e in skeleton.scenario["envelopes"]}

        assert versions == {"ENV-001": 3, "ENV-002": 2, "ENV-003": 2}
        assert skeleton.scenario["envelopes"][0]["assumptions"] == ["NEW_ASSUMPTION_7", "NEW_ASSUMPTION_8"]

    def test_missing_collections(self):
        """Test a scenario without envelopes or events is returned as is."""
        assert reconcile_envelope_state({}) == {}

    def test_non_string_envelope_ids_skipped(self):
        """Test list and object envelope ids are left alone instead of raising."""
        listed = _revision("revision:1", 22, 2, ["a22"], ["c22"], envelope_id=["ENV-001"])
        keyed = _revision("revision:2", 30, 2, ["b30"], ["d30"], envelope_id="ENV-002")
        scenario = _scenario(listed, keyed)
        scenario["envelopes"][1]["envelopeId"] = {"id": "ENV-002"}

        reconcile_envelope_state(scenario)

        assert latest_revisions(scenario) == {"ENV-002": keyed}
        assert scenario["envelopes"][0]["assumptions"] == ["a0"]
        assert scenario["envelopes"][1]["assumptions"] == ["b0"]
