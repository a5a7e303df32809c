"""
Unit tests for exercise entities and DNS record synthesis.
"""

from exlab.domain.exercises.entities import (
    ChildExercise,
    ContainerSpec,
    ExerciseSpec,
    Flag,
    RecordConfig,
    random_flag_factory,
)
from exlab.infrastructure.orchestrator.dns import synthesize_records


class TestRecordSynthesis:
    """Test filling record templates with container addresses."""
    
    def test_empty_data_becomes_address(self):
        records = synthesize_records([RecordConfig("A", "web.lab")], "10.0.0.5")
        
        assert records == [RecordConfig("A", "web.lab", "10.0.0.5")]
    
    def test_explicit_data_passes_through(self):
        template = RecordConfig("CNAME", "www.web.lab", "web.lab")
        
        assert synthesize_records([template], "10.0.0.5") == [template]
    
    def test_order_preserved(self):
        templates = [
            RecordConfig("A", "a.lab"),
            RecordConfig("MX", "b.lab", "mail.b.lab"),
            RecordConfig("A", "c.lab"),
        ]
        
        records = synthesize_records(templates, "10.0.0.7")
        
        assert [r.name for r in records] == ["a.lab", "b.lab", "c.lab"]
        assert [r.data for r in records] == ["10.0.0.7", "mail.b.lab", "10.0.0.7"]
    
    def test_no_templates(self):
        assert synthesize_records([], "10.0.0.5") == []
    
    def test_format(self):
        assert RecordConfig("A", "web.lab", "10.0.0.5").format() == "web.lab IN A 10.0.0.5"


class TestContainerOpts:
    """Test building container requests and flags from a spec."""
    
    def test_generated_and_static_flags(self, web_exercise, fixed_flags):
        configs, records, flags = web_exercise.container_opts(fixed_flags)
        
        assert [c.image for c in configs] == ["exlab/shop-web", "exlab/shop-db"]
        assert [len(r) for r in records] == [2, 1]
        assert [(f.tag, f.value) for f in flags] == [
            ("login-bypass", "EXL{flag-1}"),
            ("dump-db", "EXL{static-db}"),
        ]
    
    def test_resource_limits_copied(self, web_exercise, fixed_flags):
        configs, _, _ = web_exercise.container_opts(fixed_flags)
        
        assert configs[0].memory_mb == 256
        assert configs[0].cpu == 0.5
    
    def test_static_flag_with_env_var(self):
        spec = ExerciseSpec(
            tag="crypto",
            name="Crypto",
            instances=(
                ContainerSpec(
                    image="exlab/crypto",
                    children=(ChildExercise(tag="rsa", name="RSA", env_flag="FLAG", static="EXL{rsa}"),),
                ),
            ),
        )
        
        configs, _, flags = spec.container_opts(lambda: "unused")
        
        assert configs[0].env == {"FLAG": "EXL{rsa}"}
        assert flags[0].value == "EXL{rsa}"
    
    def test_flag_children(self, web_exercise):
        assert [c.tag for c in web_exercise.flag_children()] == ["login-bypass", "dump-db"]
    
    def test_to_dict(self, web_exercise):
        data = web_exercise.to_dict()
        
        assert data["containers"] == 2
        assert data["vms"] == 1
        assert [c["tag"] for c in data["children"]] == ["login-bypass", "dump-db", "no-flag"]


class TestFlags:
    """Test flag values."""
    
    def test_random_flags_are_wrapped_and_unique(self):
        factory = random_flag_factory("CTF{", "}")
        
        a, b = factory(), factory()
        
        assert a.startswith("CTF{") and a.endswith("}")
        assert a != b
    
    def test_matches(self):
        flag = Flag(tag="rsa", name="RSA", value="EXL{abc}")
        
        assert flag.matches("EXL{abc}") is True
        assert flag.matches("EXL{abd}") is False
    
    def test_to_dict_omits_value(self):
        assert "value" not in Flag(tag="rsa", name="RSA", value="EXL{abc}").to_dict()
