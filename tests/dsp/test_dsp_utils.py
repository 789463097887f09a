from pulsefit.dsp.utils import NumbaDefaults


def test_numba_defaults(monkeypatch):
    monkeypatch.setenv("PULSEFIT_CACHE", "true")
    monkeypatch.delenv("PULSEFIT_BOUNDSCHECK", raising=False)

    defaults = NumbaDefaults()
    assert defaults["cache"] is True
    assert defaults["boundscheck"] is False
    assert set(defaults) == {"cache", "boundscheck"}

    kwargs = defaults(nopython=True)
    assert kwargs == {"cache": True, "boundscheck": False, "nopython": True}
    assert "nopython" not in defaults

    defaults.cache = False
    assert dict(**defaults) == {"cache": False, "boundscheck": False}


def test_numba_defaults_reload(monkeypatch):
    monkeypatch.delenv("PULSEFIT_CACHE", raising=False)
    monkeypatch.delenv("PULSEFIT_BOUNDSCHECK", raising=False)
    defaults = NumbaDefaults()
    defaults.cache = True

    monkeypatch.setenv("PULSEFIT_BOUNDSCHECK", "1")
    defaults.reload()
    assert defaults(nopython=True) == {
        "cache": False,
        "boundscheck": True,
        "nopython": True,
    }
