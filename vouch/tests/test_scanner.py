"""
Tests for finding annotated functions in source files
"""

import types

from vouch.core.config import BuildConfig
from vouch.scanner import SpecFunctionScanner, scan_file

SOURCE = '''
from vouch import spec


@spec("requires: x > 0, ensures: output > x")
def inc(x):
    return x + 1


class Stack:
    @spec("""
        requires: len(self.items) > 0,
        ensures: output is not None,
    """)
    def pop(self):
        return self.items.pop()


@spec("requires: x >")
def broken(x):
    return x


def plain(x):
    return x
'''


def line_of(source, text):
    return source.splitlines().index(text) + 1


def test_finds_annotated_functions():
    """Test every @spec function is reported in file order"""
    report = SpecFunctionScanner().parse_source(SOURCE, "example.py")

    assert [f.qualname for f in report.functions] == ["inc", "Stack.pop", "broken"]
    assert report.functions[0].line_number == line_of(SOURCE, "def inc(x):")
    assert report.functions[0].specification.preconditions[0].expr.source == "x > 0"
    assert report.functions[1].valid


def test_error_location_in_file():
    """Test annotation errors point into the file"""
    report = SpecFunctionScanner().parse_source(SOURCE, "example.py")
    broken = report.functions[2]

    assert not broken.valid
    assert broken.error.message.startswith("invalid expression")
    assert broken.error.in_file
    assert broken.error.line == line_of(SOURCE, '@spec("requires: x >")')
    assert broken.error.column == 18
    assert len(report.errors) == 1


def test_multiline_error_location():
    """Test errors on later lines of a triple-quoted annotation"""
    source = '''
import vouch

@vouch.spec("""
    requires: x > 0,
    assumes: y,
""")
def f(x, y):
    return x
'''
    error = SpecFunctionScanner().parse_source(source).functions[0].error

    assert error.message.startswith("expected one of")
    assert error.line == line_of(source, "    assumes: y,")
    assert error.column == 5


def test_non_literal_annotation():
    """Test annotations built at runtime cannot be scanned"""
    source = '''
TEXT = "requires: x > 0"

@spec(TEXT)
def f(x):
    return x
'''
    info = SpecFunctionScanner().parse_source(source).functions[0]
    assert info.error.message == "annotation is not a string literal"


def test_await_checked_against_function_kind():
    """Test expressions are compiled in the context of their function"""
    source = '''
@spec("requires: await ready()")
def sync_f():
    pass

@spec("requires: await ready()")
async def async_f():
    pass
'''
    sync_f, async_f = SpecFunctionScanner().parse_source(source).functions

    assert not sync_f.valid
    assert async_f.valid
    assert async_f.is_async


def test_nested_definitions():
    """Test functions inside conditionals and other functions"""
    source = '''
if True:
    @spec("requires: a")
    def guarded(a):
        return a

def outer():
    @spec("requires: b")
    def inner(b):
        return b
    return inner
'''
    report = SpecFunctionScanner().parse_source(source)
    assert [f.qualname for f in report.functions] == ["guarded", "outer.<locals>.inner"]


def test_report_to_dict():
    """Test the serializable report"""
    data = SpecFunctionScanner().parse_source(SOURCE, "example.py").to_dict()

    assert data["filename"] == "example.py"
    assert data["total"] == 3
    assert data["invalid"] == 1
    assert data["functions"][2]["error"]["in_file"] is True


def test_scan_file(tmp_path):
    """Test scanning from disk"""
    path = tmp_path / "module.py"
    path.write_text(SOURCE)

    report = scan_file(str(path), BuildConfig())
    assert report.filename == str(path)
    assert len(report.functions) == 3


def test_parse_module():
    """Test collecting instrumented functions from a loaded module"""
    module = types.ModuleType("scan_target")
    exec(compile('''
from vouch import spec
from vouch.core.config import BuildConfig

CONFIG = BuildConfig()


@spec("requires: x > 0", config=CONFIG)
def inc(x):
    return x + 1


class Box:
    @spec("ensures: output >= 0", config=CONFIG)
    def size(self):
        return 0


def plain():
    pass
''', "scan_target", "exec"), module.__dict__)

    functions = SpecFunctionScanner().parse_module(module)
    names = sorted(f.qualname for f in functions)

    assert names == ["Box.size", "inc"]
    inc = next(f for f in functions if f.name == "inc")
    assert inc.annotation == "requires: x > 0"
    assert inc.line_number == 8
