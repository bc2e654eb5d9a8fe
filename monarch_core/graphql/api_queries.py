"""Morpho API GraphQL documents (https://blue-api.morpho.org/graphql)."""

MARKET_FIELDS = """
  fragment MarketFields on Market {
    lltv
    uniqueKey
    irmAddress
    oracleAddress
    whitelisted
    morphoBlue {
      address
      chain {
        id
      }
    }
    loanAsset {
      address
      symbol
      name
      decimals
    }
    collateralAsset {
      address
      symbol
      name
      decimals
    }
    state {
      borrowAssets
      supplyAssets
      borrowAssetsUsd
      supplyAssetsUsd
      borrowShares
      supplyShares
      liquidityAssets
      liquidityAssetsUsd
      collateralAssets
      collateralAssetsUsd
      utilization
      supplyApy
      borrowApy
      fee
      timestamp
      rateAtUTarget
    }
    realizedBadDebt {
      underlying
    }
    warnings {
      type
      level
      __typename
    }
  }
"""

MARKETS_QUERY = (
    """
  query getMarkets($first: Int, $skip: Int, $where: MarketFilters) {
    markets(first: $first, skip: $skip, where: $where) {
      items {
        ...MarketFields
      }
      pageInfo {
        countTotal
        count
        limit
        skip
      }
    }
  }
"""
    + MARKET_FIELDS
)

MARKET_DETAIL_QUERY = (
    """
  query getMarketDetail($uniqueKey: String!, $chainId: Int) {
    marketByUniqueKey(uniqueKey: $uniqueKey, chainId: $chainId) {
      ...MarketFields
    }
  }
"""
    + MARKET_FIELDS
)

_POINT = "{\n          x\n          y\n        }"

MARKET_HISTORICAL_QUERY = f"""
  query getMarketHistoricalData($uniqueKey: String!, $options: TimeseriesOptions!, $chainId: Int) {{
    marketByUniqueKey(uniqueKey: $uniqueKey, chainId: $chainId) {{
      historicalState {{
        supplyApy(options: $options) {_POINT}
        borrowApy(options: $options) {_POINT}
        supplyAssetsUsd(options: $options) {_POINT}
        borrowAssetsUsd(options: $options) {_POINT}
        supplyAssets(options: $options) {_POINT}
        borrowAssets(options: $options) {_POINT}
        liquidityAssets(options: $options) {_POINT}
        liquidityAssetsUsd(options: $options) {_POINT}
        utilization(options: $options) {_POINT}
        rateAtUTarget(options: $options) {_POINT}
      }}
    }}
  }}
"""

MARKET_LIQUIDATIONS_QUERY = """
  query getMarketLiquidations($uniqueKey: String!, $chainId: Int!, $first: Int, $skip: Int) {
    transactions(
      where: {
        marketUniqueKey_in: [$uniqueKey]
        chainId_in: [$chainId]
        type_in: [MarketLiquidation]
      }
      first: $first
      skip: $skip
    ) {
      items {
        hash
        timestamp
        type
        data {
          ... on MarketLiquidationTransactionData {
            repaidAssets
            seizedAssets
            liquidator
            badDebtAssets
          }
        }
      }
      pageInfo {
        countTotal
        count
      }
    }
  }
"""

_TRANSFER_TRANSACTIONS = """
  query {name}($uniqueKey: String!, $chainId: Int!, $first: Int, $skip: Int) {{
    transactions(
      where: {{
        marketUniqueKey_in: [$uniqueKey]
        chainId_in: [$chainId]
        type_in: [{types}]
      }}
      first: $first
      skip: $skip
      orderBy: Timestamp
      orderDirection: Desc
    ) {{
      items {{
        type
        hash
        timestamp
        data {{
          ... on MarketTransferTransactionData {{
            assets
            shares
          }}
        }}
        user {{
          address
        }}
      }}
      pageInfo {{
        countTotal
        count
      }}
    }}
  }}
"""

MARKET_SUPPLIES_QUERY = _TRANSFER_TRANSACTIONS.format(
    name="getMarketSupplyActivities", types="MarketSupply, MarketWithdraw"
)

MARKET_BORROWS_QUERY = _TRANSFER_TRANSACTIONS.format(
    name="getMarketBorrowActivities", types="MarketBorrow, MarketRepay"
)

MARKET_SUPPLIERS_QUERY = """
  query getMarketSuppliers($uniqueKey: String!, $chainId: Int!, $minShares: BigInt, $first: Int, $skip: Int) {
    marketPositions(
      first: $first
      skip: $skip
      orderBy: SupplyShares
      orderDirection: Desc
      where: {
        marketUniqueKey_in: [$uniqueKey]
        chainId_in: [$chainId]
        supplyShares_gte: $minShares
      }
    ) {
      items {
        user {
          address
        }
        state {
          supplyShares
          supplyAssets
        }
      }
      pageInfo {
        countTotal
        count
      }
    }
  }
"""

MARKET_BORROWERS_QUERY = """
  query getMarketBorrowers($uniqueKey: String!, $chainId: Int!, $minShares: BigInt, $first: Int, $skip: Int) {
    marketPositions(
      first: $first
      skip: $skip
      orderBy: BorrowShares
      orderDirection: Desc
      where: {
        marketUniqueKey_in: [$uniqueKey]
        chainId_in: [$chainId]
        borrowShares_gte: $minShares
      }
    ) {
      items {
        user {
          address
        }
        state {
          borrowAssets
          collateral
        }
      }
      pageInfo {
        countTotal
        count
      }
    }
  }
"""

VAULT_V2_QUERY = """
  query getVaultV2($address: String!, $chainId: Int!) {
    vaultV2ByAddress(address: $address, chainId: $chainId) {
      id
      address
      name
      symbol
      avgApy
      asset {
        address
        symbol
        name
        decimals
      }
      curator {
        address
      }
      owner {
        address
      }
      allocators {
        allocator {
          address
        }
      }
      caps {
        items {
          id
          idData
          absoluteCap
          relativeCap
        }
      }
    }
  }
"""

VAULT_V2_OWNERS_QUERY = """
  query getVaultV2Owners($first: Int, $skip: Int) {
    vaultV2s(first: $first, skip: $skip) {
      items {
        address
        owner {
          address
        }
        chain {
          id
        }
      }
      pageInfo {
        countTotal
      }
    }
  }
"""

_POSITION_STATE = """
      state {
        supplyShares
        supplyAssets
        borrowShares
        borrowAssets
        collateral
      }
      market {
        ...MarketFields
      }"""

USER_POSITIONS_QUERY = (
    f"""
  query getUserMarketPositions($address: String!, $chainId: Int) {{
    userByAddress(address: $address, chainId: $chainId) {{
      marketPositions {{{_POSITION_STATE}
      }}
    }}
  }}
"""
    + MARKET_FIELDS
)

USER_POSITION_FOR_MARKET_QUERY = (
    f"""
  query getUserMarketPosition($address: String!, $chainId: Int, $marketKey: String!) {{
    marketPosition(userAddress: $address, marketUniqueKey: $marketKey, chainId: $chainId) {{{_POSITION_STATE}
    }}
  }}
"""
    + MARKET_FIELDS
)

USER_TRANSACTIONS_QUERY = """
  query getUserTransactions($where: TransactionFilters, $first: Int, $skip: Int) {
    transactions(
      where: $where
      first: $first
      skip: $skip
      orderBy: Timestamp
      orderDirection: Desc
    ) {
      items {
        hash
        timestamp
        type
        data {
          __typename
          ... on MarketTransferTransactionData {
            shares
            assets
            market {
              uniqueKey
            }
          }
          ... on MarketLiquidationTransactionData {
            repaidAssets
            market {
              uniqueKey
            }
          }
        }
      }
      pageInfo {
        count
        countTotal
      }
    }
  }
"""
