import json

import pytest

import minimago.batch as batch_mod
from minimago.main import build_parser, build_request, run


def test_build_request_only_includes_given_options():
    args = build_parser().parse_args(["a.png", "--format", "webp", "--crop", "1,2,3,4", "--remove-bg"])
    req = build_request(args, "a.png")
    assert req == {
        "inputPath": "a.png",
        "removeBg": True,
        "format": "webp",
        "crop": {"x": 1, "y": 2, "width": 3, "height": 4},
    }


@pytest.mark.parametrize("crop", ["1,2,3", "a,b,c,d"])
def test_bad_crop_is_a_usage_error(crop):
    with pytest.raises(SystemExit) as exc:
        build_parser().parse_args(["a.png", "--crop", crop])
    assert exc.value.code == 2


def test_run_prints_envelopes_and_exit_status(monkeypatch, capsys, tmp_path):
    seen_configs = []

    def _fake(req, config):
        seen_configs.append(config)
        if req["inputPath"].endswith("bad.png"):
            return {"success": False, "error": {"code": "PROCESS_ERROR", "kind": "InputNotFound", "message": "x"}}
        return {"success": True, "data": {"outputPath": "/out/good.webp"}}

    monkeypatch.setattr(batch_mod, "handle_process_request", _fake)

    rc = run(["good.png", "bad.png", "--output-dir", str(tmp_path), "--policy", "sandbox", "-j", "1"])
    assert rc == 1

    lines = [json.loads(line) for line in capsys.readouterr().out.splitlines()]
    assert [line["input"] for line in lines] == ["good.png", "bad.png"]
    assert lines[0]["success"] is True
    assert lines[1]["error"]["kind"] == "InputNotFound"
    assert all(c.output_dir == str(tmp_path) and c.output_policy == "sandbox" for c in seen_configs)


def test_run_success_exit_code(monkeypatch, capsys):
    monkeypatch.setattr(batch_mod, "handle_process_request", lambda req, config: {"success": True, "data": {}})
    assert run(["a.png"]) == 0


def test_output_requires_single_input():
    with pytest.raises(SystemExit) as exc:
        run(["a.png", "b.png", "--output", "x.png"])
    assert exc.value.code == 2
