"""
Handler detection tests

Test classes:
    TestExportedHandlers  — export const / function / wrapped handlers
    TestClassHandlers     — methods and arrow properties in classes
    TestTryBlock          — locating the first try block of a handler
"""

from __future__ import annotations

from tenancy.codemod.units import SourceStructure, find_handlers


def _names(text):
    return [unit.name for unit in find_handlers(text)]


# ══════════════════════════════════════════════════════════════════════════════
# 1. TestExportedHandlers
# ══════════════════════════════════════════════════════════════════════════════


class TestExportedHandlers:
    def test_export_const_arrow(self):
        text = "export const list = async (req: Request, res: Response) => {\n  res.json([]);\n};\n"
        units = find_handlers(text)
        assert [unit.name for unit in units] == ["list"]
        assert units[0].params == ("req", "res")
        assert units[0].request_param == "req"
        assert units[0].response_param == "res"

    def test_body_span_covers_braces(self):
        text = "export const list = async (req, res) => { res.json([]); };"
        unit = find_handlers(text)[0]
        assert text[unit.body_start] == "{"
        assert text[unit.body_end - 1] == "}"
        assert unit.text(text).startswith("export const list")

    def test_export_async_function(self):
        assert _names("export async function show(request, response) { }") == ["show"]

    def test_export_default_function(self):
        assert _names("export default async function handler(req, res) { }") == ["handler"]

    def test_return_type_annotation(self):
        text = "export const get = async (req: Request, res: Response): Promise<Response | void> => { };"
        assert _names(text) == ["get"]

    def test_wrapped_handler(self):
        text = "export const create = asyncHandler(async (req, res, next) => { res.send(); });"
        units = find_handlers(text)
        assert [unit.name for unit in units] == ["create"]
        assert units[0].params == ("req", "res", "next")

    def test_single_parameter_function_is_not_a_handler(self):
        assert _names("export const helper = (value) => { return value; };") == []
        assert _names("export const helper = value => { return value; };") == []

    def test_destructured_parameter_is_not_a_handler(self):
        assert _names("export const fn = ({ a }, b) => { };") == []

    def test_non_function_exports_are_ignored(self):
        text = "export const LIMIT = 20;\nexport const pick = async (req, res) => { };"
        assert _names(text) == ["pick"]

    def test_braces_in_strings_do_not_confuse_bodies(self):
        text = (
            "export const a = async (req, res) => { res.send('}'); };\n"
            "export const b = async (req, res) => { res.send(`${'{'}`); };\n"
        )
        assert _names(text) == ["a", "b"]

    def test_nested_functions_are_not_separate_handlers(self):
        text = "export const outer = async (req, res) => {\n  const inner = async (a, b) => { };\n};"
        assert _names(text) == ["outer"]


# ══════════════════════════════════════════════════════════════════════════════
# 2. TestClassHandlers
# ══════════════════════════════════════════════════════════════════════════════


class TestClassHandlers:
    def test_methods_and_properties(self):
        text = """\
export class PatientController {
  private repo = AppDataSource.getRepository(Patient);

  constructor(private service: PatientService, other: Other) {}

  async getAll(req: Request, res: Response) {
    res.json([]);
  }

  static remove = async (req: Request, res: Response): Promise<void> => {
    res.send();
  };

  @Get(':id')
  public async getOne(req: Request, res: Response): Promise<void> {
    res.send();
  }

  private format(value: string) {
    return value;
  }
}
"""
        assert _names(text) == ["getAll", "remove", "getOne"]

    def test_optional_parameters(self):
        text = "class C {\n  handle(req?: Request, res?: Response) { }\n}"
        assert _names(text) == ["handle"]

    def test_modifier_used_as_name(self):
        text = "class C {\n  static(req, res) { }\n}"
        assert _names(text) == ["static"]

    def test_class_expression_method_in_export_default(self):
        text = "export default class {\n  async list(req, res) { }\n}"
        assert _names(text) == ["list"]


# ══════════════════════════════════════════════════════════════════════════════
# 3. TestTryBlock
# ══════════════════════════════════════════════════════════════════════════════


class TestTryBlock:
    def test_first_try_block(self):
        text = "export const a = async (req, res) => {\n  try {\n  } catch (e) {}\n  try {\n  } catch (e) {}\n};"
        structure = SourceStructure(text)
        unit = structure.find_handlers()[0]
        index = structure.find_try_block(unit)
        assert structure.tokens[index].is_punct("{")
        assert text.index("try {") + 4 == structure.tokens[index].start

    def test_no_try_block(self):
        text = "export const a = async (req, res) => { res.send(); };"
        structure = SourceStructure(text)
        assert structure.find_try_block(structure.find_handlers()[0]) is None

    def test_try_as_property_is_ignored(self):
        text = "export const a = async (req, res) => { obj.try; };"
        structure = SourceStructure(text)
        assert structure.find_try_block(structure.find_handlers()[0]) is None
