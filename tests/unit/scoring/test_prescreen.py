"""Unit tests for the squeeze / early-setup pre-screen."""
from squeezescan.scoring import analyze_early_setup, analyze_squeeze, passes_prescreen


class TestAnalyzeSqueeze:
    def test_strong_setup_passes(self):
        result = analyze_squeeze(rsi=35, short_float=25, volume_spike=True, momentum=0.05)
        assert result.score == 6
        assert result.passed
        assert result.reasons == (
            "High short float",
            "RSI shows potential bounce",
            "Unusual volume",
            "Bullish price momentum",
        )

    def test_weak_setup(self):
        result = analyze_squeeze(rsi=60, short_float=5, volume_spike=False, momentum=0)
        assert result.score == 0
        assert not result.passed
        assert result.reasons == ()

    def test_missing_inputs_contribute_nothing(self):
        result = analyze_squeeze(rsi=None, short_float=None, volume_spike=False, momentum=None)
        assert result.score == 0

    def test_boundaries_are_exclusive(self):
        result = analyze_squeeze(rsi=40, short_float=20, volume_spike=False, momentum=0.03)
        assert result.score == 0


class TestAnalyzeEarlySetup:
    def test_early_candidate(self):
        result = analyze_early_setup(rsi=38, short_float=18, volume_spike=False, momentum=0.02)
        assert result.score == 6
        assert result.passed
        assert "No volume spike yet - possible accumulation" in result.reasons

    def test_spike_removes_accumulation_point(self):
        result = analyze_early_setup(rsi=60, short_float=5, volume_spike=True, momentum=0)
        assert result.score == 0

    def test_custom_pass_score(self):
        result = analyze_early_setup(rsi=38, short_float=5, volume_spike=False, momentum=0,
                                     pass_score=3)
        assert result.score == 3
        assert result.passed


class TestPassesPrescreen:
    def test_squeeze_candidate_passes_gate(self):
        squeeze = analyze_squeeze(rsi=35, short_float=25, volume_spike=True, momentum=0.05)
        early = analyze_early_setup(rsi=35, short_float=25, volume_spike=True, momentum=0.05)
        assert squeeze.score >= 4
        assert passes_prescreen(squeeze, early)

    def test_weak_symbol_is_gated_out(self):
        squeeze = analyze_squeeze(rsi=60, short_float=5, volume_spike=False, momentum=0)
        early = analyze_early_setup(rsi=60, short_float=5, volume_spike=False, momentum=0)
        assert squeeze.score < 2
        assert not early.passed
        assert not passes_prescreen(squeeze, early)

    def test_early_only_candidate_passes(self):
        squeeze = analyze_squeeze(rsi=42, short_float=18, volume_spike=False, momentum=0.02)
        early = analyze_early_setup(rsi=42, short_float=18, volume_spike=False, momentum=0.02)
        assert squeeze.score < 2
        assert early.passed
        assert passes_prescreen(squeeze, early)

    def test_custom_gate(self):
        squeeze = analyze_squeeze(rsi=35, short_float=25, volume_spike=False, momentum=0)
        early = analyze_early_setup(rsi=60, short_float=5, volume_spike=True, momentum=0)
        assert squeeze.score == 3
        assert passes_prescreen(squeeze, early, squeeze_gate=3)
        assert not passes_prescreen(squeeze, early, squeeze_gate=4)
