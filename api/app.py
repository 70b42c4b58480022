"""Flask app factory for RingSim."""

from flask import Flask, jsonify, request

from api import services


def create_app(db_url: str = "sqlite:///ringsim_test.db") -> Flask:
    app = Flask(__name__)

    services.init_db(db_url)

    # ------------------------------------------------------------------
    # Wrestlers
    # ------------------------------------------------------------------

    @app.route("/api/wrestlers")
    def list_wrestlers():
        tier = request.args.get("tier")
        limit = request.args.get("limit", 200, type=int)
        return jsonify(services.get_wrestlers(tier, limit))

    @app.route("/api/wrestlers/<int:wrestler_id>")
    def get_wrestler(wrestler_id: int):
        wrestler = services.get_wrestler(wrestler_id)
        if not wrestler:
            return jsonify({"error": "Wrestler not found"}), 404
        return jsonify(wrestler)

    # ------------------------------------------------------------------
    # Segment rules
    # ------------------------------------------------------------------

    @app.route("/api/rules")
    def list_rules():
        active_only = request.args.get("active", "").lower() in ("1", "true", "yes")
        heat = request.args.get("heat")
        return jsonify(services.get_rules(active_only, heat))

    @app.route("/api/rules", methods=["POST"])
    def create_rule():
        data = request.get_json(silent=True) or {}
        result = services.create_rule(
            name=data.get("name", ""),
            description=data.get("description", ""),
            requires_high_heat=data.get("requires_high_heat", False),
            bump_addition=data.get("bump_addition"),
            is_active=data.get("is_active", True),
        )
        if "error" in result:
            return jsonify(result), 400
        return jsonify(result), 201

    @app.route("/api/rules/<int:rule_id>", methods=["PUT"])
    def update_rule(rule_id: int):
        data = request.get_json(silent=True) or {}
        result = services.update_rule(rule_id, data)
        if result is None:
            return jsonify({"error": "Rule not found"}), 404
        if "error" in result:
            return jsonify(result), 400
        return jsonify(result)

    # ------------------------------------------------------------------
    # Titles
    # ------------------------------------------------------------------

    @app.route("/api/titles")
    def list_titles():
        return jsonify(services.get_titles())

    # ------------------------------------------------------------------
    # Segments
    # ------------------------------------------------------------------

    @app.route("/api/segments/resolve", methods=["POST"])
    def resolve_segment():
        data = request.get_json(silent=True) or {}
        teams = data.get("teams")
        if not isinstance(teams, list):
            return jsonify({"error": "teams must be a list of wrestler id lists"}), 400
        result = services.resolve_segment(
            teams=teams,
            team_names=data.get("team_names"),
            stipulation=data.get("stipulation"),
            segment_kind=data.get("segment_type", "Match"),
            title_ids=data.get("title_ids", []),
            multiplier=data.get("multiplier", 1.0),
            seed=data.get("seed"),
            show_id=data.get("show_id"),
            loser_policy=data.get("loser_policy"),
            tier_table=data.get("tier_table"),
            rule_id=data.get("rule_id"),
        )
        if "error" in result:
            return jsonify(result), 400
        return jsonify(result)

    @app.route("/api/segments/<int:segment_id>")
    def get_segment(segment_id: int):
        segment = services.get_segment(segment_id)
        if not segment:
            return jsonify({"error": "Segment not found"}), 404
        return jsonify(segment)

    @app.route("/api/segments/outcome", methods=["POST"])
    def segment_outcome():
        data = request.get_json(silent=True) or {}
        names = data.get("wrestlers", [])
        if not isinstance(names, list) or not all(isinstance(n, str) for n in names):
            return jsonify({"error": "wrestlers must be a list of names"}), 400
        result = services.determine_narrative_outcome(
            names=names,
            predetermined=data.get("predetermined"),
            is_promo=data.get("is_promo", False),
            seed=data.get("seed"),
        )
        if result is None:
            return jsonify({"description": None, "winner": None, "weights": {}})
        if "error" in result:
            return jsonify(result), 400
        return jsonify(result)

    # ------------------------------------------------------------------
    # Achievements
    # ------------------------------------------------------------------

    @app.route("/api/accounts/<int:account_id>/achievements")
    def account_achievements(account_id: int):
        achievements = services.get_achievements(account_id)
        if achievements is None:
            return jsonify({"error": "Account not found"}), 404
        return jsonify(achievements)

    return app
