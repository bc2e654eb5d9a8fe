"""Morpho Blue subgraph GraphQL documents.

Every list is capped at 1000 entities per request by the subgraph.
"""

TOKEN_FIELDS = """
  fragment TokenFields on Token {
    id
    name
    symbol
    decimals
    lastPriceUSD
  }
"""

MARKET_FIELDS = (
    """
  fragment SubgraphMarketFields on Market {
    id
    lltv
    irm
    inputToken {
      ...TokenFields
    }
    inputTokenPriceUSD
    borrowedToken {
      ...TokenFields
    }
    totalSupplyShares
    totalBorrowShares
    totalSupply
    totalBorrow
    totalCollateral
    fee
    inputTokenBalance
    variableBorrowedTokenBalance
    lastUpdate
    oracle {
      oracleAddress
    }
    rates {
      rate
      side
    }
    protocol {
      id
    }
  }
"""
    + TOKEN_FIELDS
)

MARKETS_QUERY = (
    """
  query getSubgraphMarkets($first: Int, $where: Market_filter) {
    markets(
      first: $first
      where: $where
      orderBy: totalValueLockedUSD
      orderDirection: desc
    ) {
      ...SubgraphMarketFields
    }
  }
"""
    + MARKET_FIELDS
)

MARKET_QUERY = (
    """
  query getSubgraphMarket($id: Bytes!) {
    market(id: $id) {
      ...SubgraphMarketFields
    }
  }
"""
    + MARKET_FIELDS
)

MARKET_HOURLY_SNAPSHOTS_QUERY = """
  query getMarketHourlySnapshots($marketId: Bytes!, $startTimestamp: BigInt!, $endTimestamp: BigInt!) {
    marketHourlySnapshots(
      first: 1000
      orderBy: timestamp
      orderDirection: asc
      where: {
        market: $marketId
        timestamp_gte: $startTimestamp
        timestamp_lte: $endTimestamp
      }
    ) {
      timestamp
      rates {
        rate
        side
      }
      inputTokenBalance
      variableBorrowedTokenBalance
    }
  }
"""

_EVENT_FIELDS = """{
      amount
      account {
        id
      }
      timestamp
      hash
    }"""

MARKET_DEPOSITS_WITHDRAWS_QUERY = f"""
  query getMarketDepositsWithdraws($marketId: Bytes!, $loanAssetId: Bytes!, $first: Int) {{
    deposits(
      first: $first
      orderBy: timestamp
      orderDirection: desc
      where: {{ market: $marketId, asset: $loanAssetId }}
    ) {_EVENT_FIELDS}
    withdraws(
      first: $first
      orderBy: timestamp
      orderDirection: desc
      where: {{ market: $marketId, asset: $loanAssetId }}
    ) {_EVENT_FIELDS}
  }}
"""

MARKET_BORROWS_REPAYS_QUERY = f"""
  query getMarketBorrowsRepays($marketId: Bytes!, $loanAssetId: Bytes!, $first: Int) {{
    borrows(
      first: $first
      orderBy: timestamp
      orderDirection: desc
      where: {{ market: $marketId, asset: $loanAssetId }}
    ) {_EVENT_FIELDS}
    repays(
      first: $first
      orderBy: timestamp
      orderDirection: desc
      where: {{ market: $marketId, asset: $loanAssetId }}
    ) {_EVENT_FIELDS}
  }}
"""

MARKET_LIQUIDATIONS_QUERY = """
  query getMarketLiquidations($marketId: Bytes!, $first: Int) {
    liquidates(
      first: $first
      where: { market: $marketId }
      orderBy: timestamp
      orderDirection: desc
    ) {
      id
      hash
      timestamp
      repaid
      amount
      liquidator {
        id
      }
    }
    badDebtRealizations(first: $first, where: { market: $marketId }) {
      badDebt
      liquidation {
        id
      }
    }
  }
"""

_POSITIONS_QUERY = """
  query {name}($market: String!, $minShares: BigInt!, $first: Int!, $skip: Int!) {{
    market(id: $market) {{
      {totals}
    }}
    positions(
      first: $first
      skip: $skip
      orderBy: shares
      orderDirection: desc
      where: {{ market: $market, side: {side}, shares_gte: $minShares }}
    ) {{
      shares
      account {{
        id
        {collateral}
      }}
    }}
  }}
"""

MARKET_SUPPLIERS_QUERY = _POSITIONS_QUERY.format(
    name="getMarketSuppliers",
    totals="totalSupply\n      totalSupplyShares",
    side="SUPPLIER",
    collateral="",
)

MARKET_BORROWERS_QUERY = _POSITIONS_QUERY.format(
    name="getMarketBorrowers",
    totals="totalBorrow\n      totalBorrowShares",
    side="BORROWER",
    collateral=(
        "positions(where: { market: $market, side: COLLATERAL }) {\n"
        "          balance\n"
        "        }"
    ),
)

MARKET_LOAN_ASSET_QUERY = """
  query getMarketLoanAsset($id: Bytes!) {
    market(id: $id) {
      borrowedToken {
        id
      }
    }
  }
"""

USER_POSITION_MARKETS_QUERY = """
  query getUserPositionMarkets($userId: ID!, $first: Int!) {
    account(id: $userId) {
      positions(first: $first, where: { balance_gt: "0" }) {
        market {
          id
        }
      }
    }
  }
"""

USER_MARKET_POSITION_QUERY = """
  query getUserMarketPosition($marketId: String!, $userId: String!) {
    positions(where: { market: $marketId, account: $userId }) {
      id
      asset {
        id
      }
      isCollateral
      balance
      shares
      side
    }
  }
"""

_USER_EVENTS = """(
        first: $first
        orderBy: timestamp
        orderDirection: desc
        where: { timestamp_gte: $timestampGte, timestamp_lte: $timestampLte }
      )"""

USER_TRANSACTIONS_QUERY = f"""
  query getUserTransactions(
    $userId: ID!
    $first: Int!
    $timestampGte: BigInt!
    $timestampLte: BigInt!
  ) {{
    account(id: $userId) {{
      deposits{_USER_EVENTS} {{
        hash
        timestamp
        isCollateral
        amount
        shares
        market {{
          id
        }}
      }}
      withdraws{_USER_EVENTS} {{
        hash
        timestamp
        isCollateral
        amount
        shares
        market {{
          id
        }}
      }}
      borrows{_USER_EVENTS} {{
        hash
        timestamp
        amount
        shares
        market {{
          id
        }}
      }}
      repays{_USER_EVENTS} {{
        hash
        timestamp
        amount
        shares
        market {{
          id
        }}
      }}
      liquidations{_USER_EVENTS} {{
        hash
        timestamp
        repaid
        market {{
          id
        }}
      }}
    }}
  }}
"""
