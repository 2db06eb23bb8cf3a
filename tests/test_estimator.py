import numpy as np
import pandas as pd
import pytest

from citree import (
    ConditionalInferenceTree,
    Dataset,
    InvalidConfig,
    NotFittedError,
    PredictorType,
    TreeConfig,
    UnseenCategoryPolicy,
)


class TestConfigValidation:
    @pytest.mark.parametrize(
        "parameter, value",
        [
            ("max_depth", 0),
            ("max_depth", 2.5),
            ("max_depth", True),
            ("min_criterion", 0.0),
            ("min_criterion", 1.0),
            ("min_criterion", 1.5),
            ("min_node_size", 0),
            ("test_type", "exact"),
            ("n_permutations", 0),
            ("max_nominal_levels", 1),
            ("unseen_category", "sideways"),
            ("n_jobs", 0),
        ],
    )
    def test_out_of_domain_values_fail_fast(self, parameter, value):
        with pytest.raises(InvalidConfig) as excinfo:
            ConditionalInferenceTree(**{parameter: value})
        assert excinfo.value.parameter == parameter

    def test_values_are_never_clamped(self):
        with pytest.raises(InvalidConfig):
            TreeConfig().replace(min_criterion=1.2)

    def test_invalid_config_is_a_value_error(self):
        with pytest.raises(ValueError):
            TreeConfig(max_depth=-1)

    def test_policy_string_is_coerced(self):
        config = TreeConfig(unseen_category="left")
        assert config.unseen_category is UnseenCategoryPolicy.LEFT
        assert config.to_dict()["unseen_category"] == "left"

    def test_configs_are_hashable_and_comparable(self):
        assert TreeConfig(max_depth=3) == TreeConfig(max_depth=3)
        assert len({TreeConfig(max_depth=3), TreeConfig(max_depth=3), TreeConfig()}) == 2


class TestFitPredict:
    def test_step_function(self, step_data):
        X, y = step_data
        model = ConditionalInferenceTree(max_depth=3, min_node_size=5).fit(X, y)

        assert model.predict(pd.DataFrame({"x": [2.0, 7.0]})).tolist() == [0.0, 10.0]
        assert model.predict_record({"x": 4.9}) == pytest.approx(10.0)
        assert model.get_depth() == 1
        assert len(model.get_leaves()) == 2

    def test_numpy_input_gets_positional_names(self):
        x = np.tile(np.arange(10, dtype=float), 5)
        y = np.where(x < 5, 0.0, 10.0)
        model = ConditionalInferenceTree(min_node_size=5).fit(x.reshape(-1, 1), y)

        assert model.tree_.root.split_variable == "X0"
        assert model.predict(np.array([[1.0], [8.0]])).tolist() == [0.0, 10.0]

    def test_fit_accepts_dataset(self, linear_dataset):
        model = ConditionalInferenceTree(max_depth=2).fit(linear_dataset)
        assert model.tree_.n_samples == len(linear_dataset)

    def test_fit_requires_response(self, step_data):
        X, _ = step_data
        with pytest.raises(ValueError):
            ConditionalInferenceTree().fit(X)

    def test_declared_types_override_inference(self, mixed_data):
        X, y = mixed_data
        model = ConditionalInferenceTree().fit(X, y, predictor_types={"grade": "ordinal"})

        assert model.tree_.predictors["grade"].predictor_type == PredictorType.ORDINAL
        assert model.tree_.predictors["region"].predictor_type == PredictorType.NOMINAL
        assert model.tree_.predictors["amount"].predictor_type == PredictorType.CONTINUOUS

    def test_apply_returns_leaf_ids(self, step_data):
        X, y = step_data
        model = ConditionalInferenceTree(min_node_size=5).fit(X, y)

        leaves = {leaf.node_id for leaf in model.get_leaves()}
        assert set(model.apply(X)) == leaves

    def test_get_params_round_trip(self):
        model = ConditionalInferenceTree(max_depth=4, min_criterion=0.9, unseen_category="raise")
        clone = ConditionalInferenceTree(**model.get_params())
        assert clone.config == model.config

    def test_from_config(self, step_data):
        config = TreeConfig(max_depth=2, min_node_size=5)
        model = ConditionalInferenceTree.from_config(config).fit(*step_data)
        assert model.config is config
        assert model.tree_.config is config

    def test_split_history_and_printing(self, step_data, capsys):
        model = ConditionalInferenceTree(min_node_size=5).fit(*step_data)

        history = model.get_split_history()
        assert history.get_node_history(0).selected_predictor == "x"

        model.print_tree()
        output = capsys.readouterr().out
        assert "Split: x" in output
        assert "Leaf" in output


class TestNotFitted:
    @pytest.mark.parametrize(
        "call",
        [
            lambda m: m.predict(pd.DataFrame({"x": [1.0]})),
            lambda m: m.predict_record({"x": 1.0}),
            lambda m: m.variable_importance(),
            lambda m: m.get_leaves(),
            lambda m: m.get_split_history(),
        ],
    )
    def test_methods_require_fit(self, call):
        with pytest.raises(NotFittedError, match="not been fitted"):
            call(ConditionalInferenceTree())

    def test_print_tree_before_fit(self, capsys):
        ConditionalInferenceTree().print_tree()
        assert "not fitted" in capsys.readouterr().out


class TestDatasetInput:
    def test_missing_predictor_values_rejected(self):
        X = pd.DataFrame({"x": [1.0, np.nan, 3.0]})
        with pytest.raises(ValueError, match="missing"):
            Dataset.from_frame(X, [1.0, 2.0, 3.0])

    def test_missing_response_rejected(self):
        with pytest.raises(ValueError, match="missing"):
            Dataset.from_frame({"x": [1.0, 2.0]}, [1.0, np.nan])

    def test_length_mismatch_rejected(self):
        with pytest.raises(ValueError):
            Dataset.from_frame({"x": [1.0, 2.0, 3.0]}, [1.0, 2.0])

    def test_unknown_declared_column_rejected(self):
        with pytest.raises(ValueError, match="unknown"):
            Dataset.from_frame({"x": [1.0, 2.0]}, [1.0, 2.0], {"z": "nominal"})

    def test_ordinal_strings_default_to_sorted_order(self):
        dataset = Dataset.from_frame({"g": ["b", "a", "c", "a"]}, [1.0, 2.0, 3.0, 4.0], {"g": "ordinal"})
        assert dataset.predictors["g"].ordered_categories == ["a", "b", "c"]
        assert dataset.columns["g"].tolist() == [1.0, 0.0, 2.0, 0.0]

    def test_subset_keeps_predictors(self, linear_dataset):
        part = linear_dataset.subset(np.array([3, 1, 2]))
        assert len(part) == 3
        assert part.predictors is linear_dataset.predictors
        assert part.response.tolist() == linear_dataset.response[[3, 1, 2]].tolist()
