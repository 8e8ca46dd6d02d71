"""Trace and config builders shared by the test modules."""

import json

SAMPLE_CONFIG_YAML = """
tasks:
  - key: code
    call: git/clone 2.0.2
    with:
      repository: https://github.com/example/repo.git
      ref: ${{ init.commit-sha }}
      github-token: ${{ github.token }}

  - key: go
    call: golang/install 1.2.0
    with:
      go-version: "1.23"

  - key: mod-download
    call: golang/mod-download 1.0.0
    use: [code, go]

  - key: test
    use: [code, go, mod-download]
    env:
      DATABASE_URL: postgres://localhost:5432/testdb
      API_KEY: ${{ secrets.API_KEY }}
    background-processes:
      - key: postgres
        run: pg_ctl start
        ready-check: pg_isready
    run: |
      go test -race ./...
      go vet ./...

  - key: deploy
    use: [test]
    if: github.ref == 'refs/heads/main'
    env:
      DEPLOY_TOKEN: ${{ secrets.DEPLOY_TOKEN }}
    run: ./deploy.sh
"""


def init_event(skills=None):
    return {"type": "system", "subtype": "init", "skills": skills or []}


def assistant_event(*blocks):
    return {"type": "assistant", "message": {"role": "assistant", "content": list(blocks)}}


def text_block(text):
    return {"type": "text", "text": text}


def tool_use(name, input=None):
    return {"type": "tool_use", "id": f"toolu_{name}", "name": name, "input": input or {}}


def result_event(duration_ms=1000, input_tokens=100, output_tokens=50, cost=0.25,
                 cache_creation=10, cache_read=20):
    return {
        "type": "result",
        "subtype": "success",
        "duration_ms": duration_ms,
        "total_cost_usd": cost,
        "usage": {
            "input_tokens": input_tokens,
            "cache_creation_input_tokens": cache_creation,
            "cache_read_input_tokens": cache_read,
            "output_tokens": output_tokens,
        },
    }


def dump(events):
    return json.dumps(events).encode("utf-8")


def write_configs(work_dir, files):
    """Write {name: yaml_text} under work_dir/.rwx/."""
    rwx = work_dir / ".rwx"
    rwx.mkdir(parents=True, exist_ok=True)
    for name, text in files.items():
        (rwx / name).write_text(text, encoding="utf-8")
    return rwx
